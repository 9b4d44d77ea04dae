from fabric import task
import logging
from datetime import datetime

from invoke.exceptions import Exit
from tabulate import tabulate

from confpatch.deployment import PatchDeployer, build_rulesets
from confpatch.models import ModeRule
from confpatch.utils import load_config

from .common import (
    _configure_run_logging,
    _get_console_logger,
    _parse_list,
    _run_log_handler
)

logger = logging.getLogger(__name__)


@task
def patch(c, config=None, rulesets=None, rules_file=None, root=None, dry_run=False, verbose=False):
    """
    Apply the hardening rule sets to this machine

    Args:
        config: Path to config file (default: config.yaml next to the package)
        rulesets: Comma-separated rule sets to apply (e.g. 'ssh_hardening,kernel_hardening')
        rules_file: YAML rules file for the 'custom' rule set
        root: Resolve target paths under this directory instead of /
        dry_run: If True, only show what would be changed
        verbose: Echo debug logging to the console
    """
    _configure_run_logging(verbose)
    console_logger = _get_console_logger()

    console_logger.info("=" * 60)
    console_logger.info("CONFIG PATCH RUN STARTING")
    console_logger.info("=" * 60)

    if dry_run:
        console_logger.info("DRY RUN MODE - No changes will be made")

    start_time = datetime.now()
    cfg = load_config(config)

    with _run_log_handler("patch") as log_path:
        console_logger.info(f"Log: {log_path}")
        try:
            result = PatchDeployer(cfg, runner=c).deploy(
                dry_run=dry_run,
                rulesets=_parse_list(rulesets),
                rules_file=rules_file,
                root=root
            )
        except (ValueError, OSError) as e:
            console_logger.error(f"Patch run aborted: {e}")
            raise Exit(code=2)

        logger.info(f"Summary:\n{result['summary']}")

    console_logger.info(result['summary'])
    console_logger.info("=" * 60)
    console_logger.info("CONFIG PATCH RUN COMPLETED")
    console_logger.info("=" * 60)
    console_logger.info(f"Total time: {datetime.now() - start_time}")
    if result['report_file']:
        console_logger.info(f"Report: {result['report_file']}")

    if result['failed']:
        console_logger.error("Patch run had failures, review the summary before restarting services")
        raise Exit(code=1)

    return result


@task
def list_rulesets(c, config=None):
    """List available rule sets in application order"""
    cfg = load_config(config)
    rulesets = build_rulesets(root=cfg.get('root', '/'), settings=cfg.get('settings'))

    print("\nAvailable Rule Sets:")
    print("=" * 40)
    for i, ruleset in enumerate(rulesets, 1):
        print(f"{i:2d}. {ruleset.get_name()}")
    print()


@task
def show_rules(c, ruleset, config=None, rules_file=None):
    """Show the rules of one rule set"""
    cfg = load_config(config)
    ruleset_settings = dict(cfg.get('settings') or {})
    ruleset_settings['rules_file'] = rules_file or cfg.get('rules_file')
    selected = build_rulesets([ruleset], root=cfg.get('root', '/'), settings=ruleset_settings)[0]

    table_data = []
    for rule in selected.get_rules():
        if isinstance(rule, ModeRule):
            change = f"mode {rule.mode:o}" if rule.mode is not None else f"clear {rule.clear_bits:03o}"
            table_data.append([rule.target_path, rule.description, change])
        else:
            change = rule.replacement_line or f"append: {rule.append_if_absent}"
            table_data.append([rule.target_path, rule.description, change])

    print(tabulate(table_data, headers=["Target", "Description", "Change"], tablefmt="simple"))
    for command in selected.get_post_apply_commands():
        print(f"post-apply: {command.command}")
