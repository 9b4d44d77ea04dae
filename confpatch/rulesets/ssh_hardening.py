"""
SSH daemon hardening in /etc/ssh/sshd_config
"""
#TODO: PasswordAuthentication no once every account that needs SSH has a key deployed.

from typing import List

from ..models import PatchRule, PostApplyCommand
from .base import RuleSet

CIPHERS = "aes256-gcm@openssh.com,chacha20-poly1305@openssh.com,aes256-ctr"
MACS = "hmac-sha2-512-etm@openssh.com,hmac-sha2-256-etm@openssh.com,hmac-sha2-512,hmac-sha2-256"


class SSHHardeningRuleSet(RuleSet):
    """sshd_config directives, validated with sshd -t before the restart"""

    defaults = {
        'client_alive_interval': 300,
        'client_alive_count_max': 0,
        'ssh_restart_command': 'systemctl restart sshd || service ssh restart',
    }

    def get_name(self) -> str:
        return "ssh_hardening"

    def get_rules(self) -> List[PatchRule]:
        sshd_config = self.path('/etc/ssh/sshd_config')
        rules = []

        # Replace the directive whether it is set or commented out
        ssh_params = [
            ("PermitRootLogin", "no", "Disable root login"),
            ("Protocol", "2", "Force SSH protocol 2"),
            ("GSSAPIAuthentication", "no", "Disable GSSAPI authentication"),
            ("ChallengeResponseAuthentication", "no", "Disable challenge-response authentication"),
            ("X11Forwarding", "no", "Disable X11 forwarding"),
            ("ClientAliveInterval", self.settings['client_alive_interval'], "Set idle client probe interval"),
            ("ClientAliveCountMax", self.settings['client_alive_count_max'], "Set idle client probe count"),
        ]

        for directive, value, desc in ssh_params:
            rules.append(PatchRule(
                target_path=sshd_config,
                match_pattern=rf'^#?{directive}\b.*',
                replacement_line=f"{directive} {value}",
                description=desc
            ))

        # Only added when the admin has not chosen a list already, and kept out of Match blocks
        for directive, value, desc in (
            ("Ciphers", CIPHERS, "Restrict SSH ciphers"),
            ("MACs", MACS, "Restrict SSH MACs"),
        ):
            rules.append(PatchRule(
                target_path=sshd_config,
                match_pattern=rf'^{directive}\s',
                append_if_absent=f"{directive} {value}",
                insert_before=r'^Match\s',
                description=desc
            ))

        return rules

    def get_post_apply_commands(self) -> List[PostApplyCommand]:
        sshd_config = self.path('/etc/ssh/sshd_config')
        return [
            PostApplyCommand(f"sshd -t -f {sshd_config}", "Validate SSH configuration"),
            PostApplyCommand(self.settings['ssh_restart_command'], "Restart SSH service"),
        ]
