"""
Kernel parameter hardening through a sysctl drop-in file
"""

import re
from typing import List

from ..models import PatchRule, PostApplyCommand
from .base import RuleSet

SYSCTL_PARAMS = [
    # General IP network hardening
    ("net.ipv4.tcp_syncookies", "1"),
    ("net.ipv4.icmp_echo_ignore_broadcasts", "1"),
    ("net.ipv4.icmp_ignore_bogus_error_responses", "1"),
    ("net.ipv4.conf.all.accept_source_route", "0"),
    ("net.ipv4.conf.default.accept_source_route", "0"),
    ("net.ipv4.conf.all.send_redirects", "0"),
    ("net.ipv4.conf.default.send_redirects", "0"),
    ("net.ipv4.conf.all.accept_redirects", "0"),
    ("net.ipv4.conf.default.accept_redirects", "0"),
    ("net.ipv4.conf.all.secure_redirects", "0"),
    ("net.ipv4.conf.default.secure_redirects", "0"),
    ("net.ipv4.conf.all.log_martians", "1"),
    ("net.ipv4.conf.default.log_martians", "1"),
    ("net.ipv4.conf.all.rp_filter", "1"),
    ("net.ipv4.conf.default.rp_filter", "1"),
    ("net.ipv4.conf.all.arp_ignore", "1"),
    ("net.ipv4.conf.all.arp_announce", "2"),
    ("net.ipv4.conf.default.arp_ignore", "1"),
    ("net.ipv4.conf.default.arp_announce", "2"),

    # IPv6
    ("net.ipv6.conf.all.accept_redirects", "0"),
    ("net.ipv6.conf.default.accept_redirects", "0"),
    ("net.ipv6.conf.all.autoconf", "0"),
    ("net.ipv6.conf.default.autoconf", "0"),

    # Kernel
    ("kernel.randomize_va_space", "2"),
    ("kernel.dmesg_restrict", "1"),

    # File system
    ("fs.suid_dumpable", "0"),
]


class KernelHardeningRuleSet(RuleSet):
    """One drop-in line per sysctl key, loaded with sysctl -p"""

    defaults = {
        'sysctl_file': '/etc/sysctl.d/99-hardening.conf',
    }

    def get_name(self) -> str:
        return "kernel_hardening"

    def get_rules(self) -> List[PatchRule]:
        sysctl_file = self.path(self.settings['sysctl_file'])
        rules = []

        for param, value in SYSCTL_PARAMS:
            line = f"{param} = {value}"
            rules.append(PatchRule(
                target_path=sysctl_file,
                match_pattern=rf'^\s*{re.escape(param)}\s*=',
                replacement_line=line,
                append_if_absent=line,
                create=True,
                description=f"Set {param} = {value}"
            ))

        return rules

    def get_post_apply_commands(self) -> List[PostApplyCommand]:
        if self.root != '/':
            return []
        return [PostApplyCommand(
            f"sysctl -p {self.settings['sysctl_file']}",
            "Load sysctl hardening settings",
            required=False
        )]
