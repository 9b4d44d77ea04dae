"""
Password history and length on the pam_unix.so line of common-password
No PAM modules are installed, only the existing pam_unix.so line is edited.
"""

from typing import List

from ..models import PatchRule
from .base import RuleSet


class PamPasswordRuleSet(RuleSet):
    """Add remember= and minlen= to pam_unix.so"""

    defaults = {
        'pass_history': 0,
        'min_pass_len': 7,
    }

    def get_name(self) -> str:
        return "pam_password"

    def get_rules(self) -> List[PatchRule]:
        common_password = self.path('/etc/pam.d/common-password')

        return [
            PatchRule(
                target_path=common_password,
                match_pattern=r'^(.*pam_unix\.so.*obscure)(.*)$',
                replacement_line=rf"\1 remember={self.settings['pass_history']}\2",
                idempotence_check=r'pam_unix\.so.*remember=',
                expand_groups=True,
                description="Set password history (remember=) for pam_unix.so"
            ),
            PatchRule(
                target_path=common_password,
                match_pattern=r'^(.*pam_unix\.so.*obscure.*)$',
                replacement_line=rf"\1 minlen={self.settings['min_pass_len']}",
                idempotence_check=r'pam_unix\.so.*minlen=',
                expand_groups=True,
                description="Set minimum password length (minlen=) for pam_unix.so"
            ),
        ]
