#!/usr/bin/env python3
"""
confpatch - Fabfile Entry Point
Tasks are located in the tasks/ directory.

    fab patch --dry-run
    fab patch --rulesets ssh_hardening,kernel_hardening
    fab list-rulesets
    fab show-rules ssh_hardening
    fab list-backups --run-date 2026-10-19
    fab restore-backups 2026-10-19
"""

import sys
import os
import logging

# Ensure the current directory is in the path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import logging setup
try:
    from confpatch.utils import load_config, setup_logging
    setup_logging((load_config().get('logging') or {}).get('level', 'INFO'))
except Exception as e:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    logging.getLogger(__name__).warning(f"Failed to setup logging: {e}")

from tasks.patching import patch, list_rulesets, show_rules
from tasks.backups import list_backups, restore_backups

__all__ = [
    'patch',
    'list_rulesets',
    'show_rules',
    'list_backups',
    'restore_backups',
]
