from fabric import task
import logging

from invoke.exceptions import Exit
from tabulate import tabulate

from confpatch.backup import DEFAULT_SUFFIX, find_backups, restore_backup
from confpatch.deployment import build_rulesets
from confpatch.models import PatchRule
from confpatch.utils import load_config

from .common import _get_console_logger, _parse_list

logger = logging.getLogger(__name__)


def _patched_targets(cfg, rulesets=None, rules_file=None):
    ruleset_settings = dict(cfg.get('settings') or {})
    ruleset_settings['rules_file'] = rules_file or cfg.get('rules_file')
    selected = build_rulesets(_parse_list(rulesets) or cfg.get('rulesets'),
                              root=cfg.get('root', '/'), settings=ruleset_settings)

    targets = []
    for ruleset in selected:
        if not ruleset.is_applicable():
            continue
        for rule in ruleset.get_rules():
            # Mode rules never write content, so they have no backups
            if isinstance(rule, PatchRule) and rule.target_path not in targets:
                targets.append(rule.target_path)
    return targets


@task
def list_backups(c, run_date=None, config=None, rulesets=None, rules_file=None):
    """List backups of patched files, optionally for one run date (YYYY-MM-DD)"""
    cfg = load_config(config)
    suffix = (cfg.get('backup') or {}).get('suffix', DEFAULT_SUFFIX)
    records = find_backups(_patched_targets(cfg, rulesets, rules_file), run_date, suffix)

    if not records:
        print("No backups found")
        return []

    table_data = [[r.run_date, r.original_path, r.backup_path] for r in records]
    print(tabulate(table_data, headers=["Run date", "Original", "Backup"], tablefmt="simple"))
    return records


@task
def restore_backups(c, run_date, config=None, rulesets=None, rules_file=None, dry_run=False):
    """Restore every file backed up on run_date (YYYY-MM-DD)"""
    console_logger = _get_console_logger()
    cfg = load_config(config)
    suffix = (cfg.get('backup') or {}).get('suffix', DEFAULT_SUFFIX)
    records = find_backups(_patched_targets(cfg, rulesets, rules_file), run_date, suffix)

    if not records:
        console_logger.error(f"No backups found for run date {run_date}")
        raise Exit(code=1)

    failed = []
    for record in records:
        if dry_run:
            console_logger.info(f"[DRY RUN] Would restore {record.original_path} from {record.backup_path}")
            continue
        try:
            restore_backup(record)
            console_logger.info(f"Restored {record.original_path}")
        except OSError as e:
            logger.error(f"Could not restore {record.original_path}: {e}")
            failed.append(record.original_path)

    if failed:
        console_logger.error(f"Restore failed for: {', '.join(failed)}")
        raise Exit(code=1)

    return records
