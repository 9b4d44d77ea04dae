"""
Password aging policy in /etc/login.defs
"""

from typing import List

from ..models import PatchRule
from .base import RuleSet


class LoginDefsRuleSet(RuleSet):
    """Enforce password aging defaults for new accounts"""

    defaults = {
        'pass_max_days': 9999999999,
        'pass_min_days': 1,  # allow a password change after one day
        'pass_warn_age': 7,
    }

    def get_name(self) -> str:
        return "login_defs"

    def get_rules(self) -> List[PatchRule]:
        login_defs = self.path('/etc/login.defs')
        rules = []

        for key, setting in (
            ('PASS_MAX_DAYS', 'pass_max_days'),
            ('PASS_MIN_DAYS', 'pass_min_days'),
            ('PASS_WARN_AGE', 'pass_warn_age'),
        ):
            line = f"{key}\t{self.settings[setting]}"
            rules.append(PatchRule(
                target_path=login_defs,
                match_pattern=rf'^{key}\b',
                replacement_line=line,
                append_if_absent=line,
                description=f"Set {key} to {self.settings[setting]}"
            ))

        return rules
