"""
Rule sets for the confpatch framework
"""

from .base import RuleSet
from .login_defs import LoginDefsRuleSet
from .pam_password import PamPasswordRuleSet
from .ssh_hardening import SSHHardeningRuleSet
from .filesystem import FilesystemRuleSet
from .kernel_hardening import KernelHardeningRuleSet
from .custom import CustomRuleSet

# Declaration order is application order
RULESET_CLASSES = [
    LoginDefsRuleSet,
    PamPasswordRuleSet,
    SSHHardeningRuleSet,
    FilesystemRuleSet,
    KernelHardeningRuleSet,
    CustomRuleSet,
]

__all__ = [
    'RuleSet',
    'LoginDefsRuleSet',
    'PamPasswordRuleSet',
    'SSHHardeningRuleSet',
    'FilesystemRuleSet',
    'KernelHardeningRuleSet',
    'CustomRuleSet',
    'RULESET_CLASSES',
]
