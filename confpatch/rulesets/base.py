"""
Base class for rule sets
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from ..models import ModeRule, PatchRule, PostApplyCommand
from ..utils import resolve_path

logger = logging.getLogger(__name__)

Rule = Union[PatchRule, ModeRule]


class RuleSet(ABC):
    """A named group of rules for one area of the system"""

    # Values used when config.yaml does not override them
    defaults: Dict = {}

    def __init__(self, root: str = '/', settings: Optional[Dict] = None):
        self.root = root
        self.settings = dict(self.defaults)
        self.settings.update({k: v for k, v in (settings or {}).items() if k in self.defaults})

    @abstractmethod
    def get_name(self) -> str:
        """Get rule set name"""
        pass

    @abstractmethod
    def get_rules(self) -> List[Rule]:
        """Get the rules of this set in the order they must be applied"""
        pass

    def is_applicable(self) -> bool:
        """Check if this rule set is applicable to the system"""
        return True

    def get_post_apply_commands(self) -> List[PostApplyCommand]:
        """Commands to run after this set changed something, e.g. a service reload"""
        return []

    def path(self, absolute_path: str) -> str:
        return resolve_path(self.root, absolute_path)
