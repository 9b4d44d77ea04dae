#!/usr/bin/env python3
"""
Command line entry point for hosts without fab installed

    python -m confpatch --dry-run
    python -m confpatch --rulesets ssh_hardening,kernel_hardening
"""

import argparse
import logging
import sys

import yaml
from invoke import Context

from .deployment import PatchDeployer
from .utils import load_config, setup_logging

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Apply configuration hardening rules")
    parser.add_argument('--config', help='Configuration file (default: config.yaml)')
    parser.add_argument('--rulesets', '-r', help='Comma-separated rule sets to apply')
    parser.add_argument('--rules-file', help='YAML rules file for the custom rule set')
    parser.add_argument('--root', help='Resolve target paths under this directory')
    parser.add_argument('--dry-run', '-n', action='store_true', help='Show what would change')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (yaml.YAMLError, OSError) as e:
        print(f"Could not load config: {e}", file=sys.stderr)
        return 2

    level = 'DEBUG' if args.verbose else (config.get('logging') or {}).get('level', 'INFO')
    setup_logging(level)

    rulesets = [r.strip() for r in args.rulesets.split(',')] if args.rulesets else None

    try:
        result = PatchDeployer(config, runner=Context()).deploy(
            dry_run=args.dry_run,
            rulesets=rulesets,
            rules_file=args.rules_file,
            root=args.root
        )
    except (ValueError, OSError) as e:
        logger.error(f"Patch run aborted: {e}")
        return 2

    logger.info(f"Summary:\n{result['summary']}")
    return 1 if result['failed'] else 0


if __name__ == '__main__':
    sys.exit(main())
