"""
confpatch - idempotent configuration patching for Debian hardening
"""

from .models import (
    BackupRecord,
    CommandResult,
    ModeRule,
    PatchReason,
    PatchResult,
    PatchRule,
    PatchStatus,
    PostApplyCommand,
    RuleError,
)
from .patcher import ConfigPatcher
from .deployment import PatchDeployer, PatchOrchestrator, build_rulesets, has_failures

__all__ = [
    'BackupRecord',
    'CommandResult',
    'ModeRule',
    'PatchReason',
    'PatchResult',
    'PatchRule',
    'PatchStatus',
    'PostApplyCommand',
    'RuleError',
    'ConfigPatcher',
    'PatchDeployer',
    'PatchOrchestrator',
    'build_rulesets',
    'has_failures',
]
