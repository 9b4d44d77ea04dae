"""
Rules declared in a YAML rules file
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..models import PostApplyCommand
from ..utils import load_rules_file
from .base import Rule, RuleSet

logger = logging.getLogger(__name__)


class CustomRuleSet(RuleSet):
    """Rules and post-apply commands read from the configured rules file"""

    defaults = {
        'rules_file': None,
    }

    def __init__(self, root: str = '/', settings: Optional[dict] = None):
        super().__init__(root, settings)
        self._rules: Optional[List[Rule]] = None
        self._commands: List[PostApplyCommand] = []

    def get_name(self) -> str:
        return "custom"

    def is_applicable(self) -> bool:
        rules_file = self.settings['rules_file']
        if not rules_file:
            return False
        if not Path(rules_file).exists():
            logger.warning(f"Rules file not found: {rules_file}")
            return False
        return True

    def _load(self):
        if self._rules is None:
            self._rules, self._commands = load_rules_file(self.settings['rules_file'], self.root)

    def get_rules(self) -> List[Rule]:
        if not self.is_applicable():
            return []
        self._load()
        return self._rules

    def get_post_apply_commands(self) -> List[PostApplyCommand]:
        if not self.is_applicable():
            return []
        self._load()
        return self._commands
