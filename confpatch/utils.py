"""
Utility functions for the confpatch framework
Contains helper functions for configuration, rule file parsing, and logging
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import yaml

from .models import ModeRule, PatchRule, PostApplyCommand, RuleError

logger = logging.getLogger(__name__)

PATCH_FIELDS = {
    'target_path', 'match_pattern', 'replacement_line', 'append_if_absent',
    'idempotence_check', 'description', 'expand_groups', 'create', 'insert_before',
}
MODE_FIELDS = {'target_path', 'mode', 'clear_bits', 'recursive', 'description'}


def load_config(config_file: str = None) -> dict:
    """Load configuration from config.yaml file"""
    if config_file:
        config_path = Path(config_file)
    else:
        config_path = Path(__file__).parent.parent / 'config.yaml'
    if config_path.exists():
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    return {}


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def parse_mode(value: Union[int, str]) -> int:
    """Parse permission bits given as an int or an octal string like '0600'"""
    if isinstance(value, bool):
        raise RuleError(f"Invalid mode: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 8)
    except ValueError:
        raise RuleError(f"Invalid mode: {value!r}")


def resolve_path(root: str, path: str) -> str:
    """Place an absolute target path under root ('/' leaves it untouched)"""
    if not root or root == '/':
        return path
    return str(Path(root) / path.lstrip('/'))


def build_rule(entry: dict, root: str = '/') -> Union[PatchRule, ModeRule]:
    """Build a PatchRule or ModeRule from one rules-file record"""
    if not isinstance(entry, dict):
        raise RuleError(f"Rule entry must be a mapping, got {type(entry).__name__}")

    is_mode_rule = 'mode' in entry or 'clear_bits' in entry
    allowed = MODE_FIELDS if is_mode_rule else PATCH_FIELDS
    unknown = set(entry) - allowed
    if unknown:
        raise RuleError(f"Unknown rule field(s): {', '.join(sorted(unknown))}")
    if 'target_path' not in entry:
        raise RuleError("target_path is required")

    fields = dict(entry)
    fields['target_path'] = resolve_path(root, str(entry['target_path']))

    if is_mode_rule:
        for key in ('mode', 'clear_bits'):
            if fields.get(key) is not None:
                fields[key] = parse_mode(fields[key])
        return ModeRule(**fields)

    for key in ('replacement_line', 'append_if_absent'):
        if fields.get(key) is not None:
            fields[key] = str(fields[key])
    return PatchRule(**fields)


def load_rules_file(rules_file: str, root: str = '/') -> Tuple[List, List[PostApplyCommand]]:
    """
    Load rules from a YAML file

    Format:
        rules:
          - target_path: /etc/ssh/sshd_config
            match_pattern: '^#?PermitRootLogin.*'
            replacement_line: PermitRootLogin no
            append_if_absent: PermitRootLogin no
          - target_path: /etc/shadow
            mode: "0600"
        post_apply:
          - command: systemctl restart ssh
            description: Restart SSH
            required: false

    Raises RuleError if any record is invalid, so a broken file never applies
    half of its rules.
    """
    with open(rules_file, 'r') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuleError(f"{rules_file}: {e}") from e

    if isinstance(data, list):
        data = {'rules': data}
    if not isinstance(data, dict):
        raise RuleError(f"{rules_file}: expected a mapping with a 'rules' list")

    rules = []
    for index, entry in enumerate(data.get('rules') or [], 1):
        try:
            rules.append(build_rule(entry, root))
        except (RuleError, TypeError) as e:
            raise RuleError(f"{rules_file}: rule {index}: {e}") from e

    commands = []
    for entry in data.get('post_apply') or []:
        if isinstance(entry, str):
            commands.append(PostApplyCommand(entry))
        else:
            commands.append(PostApplyCommand(
                entry['command'],
                entry.get('description', ''),
                bool(entry.get('required', True))
            ))

    logger.info(f"Loaded {len(rules)} rules from {rules_file}")
    return rules, commands
