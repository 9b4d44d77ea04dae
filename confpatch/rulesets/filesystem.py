"""
File system hardening: permissions on sensitive files and a hardened /tmp entry
"""

from typing import List, Union

from ..models import ModeRule, PatchRule, PostApplyCommand
from .base import RuleSet

TMPFS_LINE = "tmpfs /tmp tmpfs defaults,noexec,nosuid,nodev 0 0"


class FilesystemRuleSet(RuleSet):
    """Restrict permissions on critical files and mount /tmp noexec,nosuid,nodev"""

    defaults = {
        'remount_tmp': True,
    }

    def get_name(self) -> str:
        return "filesystem"

    def get_rules(self) -> List[Union[ModeRule, PatchRule]]:
        rules = []

        permission_fixes = [
            ("/etc/shadow", 0o600, "Restrict /etc/shadow (password hashes)"),
            ("/etc/passwd", 0o644, "Set /etc/passwd permissions"),
            ("/etc/group", 0o644, "Set /etc/group permissions"),
            ("/boot/grub/grub.cfg", 0o600, "Restrict GRUB configuration"),
            ("/etc/sudoers", 0o600, "Restrict /etc/sudoers"),
            ("/etc/crontab", 0o600, "Restrict /etc/crontab"),
            ("/var/tmp", 0o1777, "Set sticky world-writable mode on /var/tmp"),
        ]
        for file_path, mode, desc in permission_fixes:
            rules.append(ModeRule(target_path=self.path(file_path), mode=mode, description=desc))

        for cron_dir in ("/etc/cron.d", "/etc/cron.hourly", "/etc/cron.daily",
                         "/etc/cron.weekly", "/etc/cron.monthly"):
            rules.append(ModeRule(
                target_path=self.path(cron_dir),
                clear_bits=0o022,
                recursive=True,
                description=f"Remove group/other write on {cron_dir}"
            ))

        # Leave any existing /tmp mount entry alone, only add one when there is none
        rules.append(PatchRule(
            target_path=self.path('/etc/fstab'),
            match_pattern=r'^tmpfs\s+/tmp\s',
            append_if_absent=TMPFS_LINE,
            idempotence_check=r'^\s*[^#\s]\S*\s+/tmp\s',
            description="Mount /tmp as tmpfs with noexec,nosuid,nodev"
        ))

        return rules

    def get_post_apply_commands(self) -> List[PostApplyCommand]:
        if not self.settings['remount_tmp'] or self.root != '/':
            return []
        # Remounts only take effect where the directory is its own mount point
        commands = [PostApplyCommand(
            "mount -o remount,noexec,nosuid,nodev /tmp",
            "Remount /tmp with hardening options",
            required=False
        )]
        for mount_point in ("/var/tmp", "/dev/shm"):
            commands.append(PostApplyCommand(
                f"! mountpoint -q {mount_point} || mount -o remount,noexec,nosuid,nodev {mount_point}",
                f"Remount {mount_point} with hardening options",
                required=False
            ))
        return commands
