"""
Idempotent line-level patching of text configuration files
"""

import logging
import os
import re
import stat
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .backup import DEFAULT_SUFFIX, BackupError, BackupManager
from .fileio import atomic_write, read_text
from .models import (
    BackupRecord, ModeRule, PatchReason, PatchResult, PatchRule, PatchStatus,
)

logger = logging.getLogger(__name__)

Rule = Union[PatchRule, ModeRule]

DEFAULT_DATE_FORMAT = "%Y-%m-%d"


def _split_lines(text: str) -> List[str]:
    return [line for line in re.split(r"(?<=\n)", text) if line]


def _split_ending(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


class ConfigPatcher:
    """
    Applies PatchRule and ModeRule values to the local filesystem.

    One instance corresponds to one run: it owns the run date used in backup
    names and remembers which targets were already backed up. Rules are
    applied in the order given and each one sees the edits of the rules
    before it.
    """

    def __init__(self, run_date: Optional[str] = None, backup_suffix: str = DEFAULT_SUFFIX,
                 date_format: str = DEFAULT_DATE_FORMAT, dry_run: bool = False):
        self.run_date = run_date or datetime.now().strftime(date_format)
        self.dry_run = dry_run
        self.backup_manager = BackupManager(self.run_date, backup_suffix)
        # Contents a dry run would have written, so later rules observe them
        self._staged: Dict[str, str] = {}

    @property
    def backups(self) -> List[BackupRecord]:
        return self.backup_manager.records

    def apply_all(self, rules: List[Rule]) -> List[PatchResult]:
        """Apply rules in declaration order; a failed rule never stops the rest"""
        results = []
        for rule in rules:
            prefix = "[DRY RUN] " if self.dry_run else ""
            logger.info(f"{prefix}Applying: {rule.description}")
            result = self.apply(rule)
            results.append(result)

            if result.status is PatchStatus.FAILED:
                logger.error(f"  ✗ Failed: {result.error}")
            elif result.status is PatchStatus.SKIPPED:
                logger.info(f"  • Skipped ({result.reason.value})")
            else:
                logger.info(f"  ✓ {result.reason.value.replace('_', ' ').capitalize()}")
        return results

    def apply(self, rule: Rule) -> PatchResult:
        if isinstance(rule, ModeRule):
            return self.apply_mode(rule)

        path = rule.target_path
        try:
            original = self._read(path)
        except FileNotFoundError:
            if not (rule.create and not Path(path).exists() and Path(path).parent.is_dir()):
                return self._result(rule, PatchStatus.SKIPPED, PatchReason.FILE_NOT_FOUND,
                                    output="Target file not found")
            original = None
        except PermissionError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.PERMISSION_DENIED,
                                error=f"Cannot read target: {e}")
        except OSError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.READ_ERROR,
                                error=f"Cannot read target: {e}")

        lines = _split_lines(original) if original else []

        if rule.check_re is not None:
            for line in lines:
                if rule.check_re.search(_split_ending(line)[0]):
                    return self._result(rule, PatchStatus.SKIPPED, PatchReason.ALREADY_APPLIED,
                                        output="Idempotence check matched")

        new_lines, matched, changed = self._replace_matches(rule, lines)
        if matched:
            reason = PatchReason.REPLACED
        elif rule.append_if_absent is not None:
            new_lines = self._append_line(lines, rule.append_if_absent, rule.insert_re)
            reason = PatchReason.APPENDED
            changed = 1
        else:
            return self._result(rule, PatchStatus.SKIPPED, PatchReason.NO_MATCH,
                                output="No line matched and nothing to append")

        new_text = "".join(new_lines)
        if original is not None and new_text == original:
            return self._result(rule, PatchStatus.SKIPPED, PatchReason.ALREADY_APPLIED,
                                output="Matching lines already in place")

        return self._write(rule, original, new_text, reason, changed)

    def apply_mode(self, rule: ModeRule) -> PatchResult:
        root = Path(rule.target_path)
        if not root.exists():
            return self._result(rule, PatchStatus.SKIPPED, PatchReason.FILE_NOT_FOUND,
                                output="Target path not found")

        try:
            pending = []
            for path in self._mode_targets(root, rule.recursive):
                current = stat.S_IMODE(path.stat().st_mode)
                wanted = rule.target_mode(current)
                if current != wanted:
                    pending.append((path, wanted))
        except PermissionError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.PERMISSION_DENIED, error=str(e))
        except OSError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.READ_ERROR, error=str(e))

        if not pending:
            return self._result(rule, PatchStatus.SKIPPED, PatchReason.ALREADY_APPLIED,
                                output="Permissions already correct")

        if self.dry_run:
            return self._result(rule, PatchStatus.APPLIED, PatchReason.MODE_CHANGED,
                                output=f"Would change mode on {len(pending)} path(s)",
                                dry_run=True, lines_changed=len(pending))

        try:
            for path, wanted in pending:
                os.chmod(path, wanted)
        except PermissionError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.PERMISSION_DENIED, error=str(e))
        except OSError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.WRITE_ERROR, error=str(e))

        return self._result(rule, PatchStatus.APPLIED, PatchReason.MODE_CHANGED,
                            output=f"Changed mode on {len(pending)} path(s)",
                            lines_changed=len(pending))

    def _read(self, path: str) -> str:
        if path in self._staged:
            return self._staged[path]
        if Path(path).exists() and not Path(path).is_file():
            raise FileNotFoundError(f"Not a regular file: {path}")
        return read_text(path)

    @staticmethod
    def _mode_targets(root: Path, recursive: bool):
        yield root
        if recursive and root.is_dir():
            for path in sorted(root.rglob("*")):
                # chmod follows links, leave their targets alone
                if not path.is_symlink():
                    yield path

    @staticmethod
    def _replace_matches(rule: PatchRule, lines: List[str]):
        new_lines = []
        matched = changed = 0
        for line in lines:
            body, ending = _split_ending(line)
            match = rule.match_re.search(body)
            if match is None or rule.replacement_line is None:
                matched += match is not None
                new_lines.append(line)
                continue

            matched += 1
            if rule.expand_groups:
                replacement = match.expand(rule.replacement_line)
            else:
                replacement = rule.replacement_line
            if replacement != body:
                changed += 1
            new_lines.append(replacement + ending)
        return new_lines, matched, changed

    @staticmethod
    def _append_line(lines: List[str], line: str, insert_re=None) -> List[str]:
        new_lines = list(lines)
        if insert_re is not None:
            for index, existing in enumerate(new_lines):
                if insert_re.search(_split_ending(existing)[0]):
                    new_lines.insert(index, line + "\n")
                    return new_lines

        if new_lines and not new_lines[-1].endswith(("\n", "\r")):
            new_lines[-1] += "\n"
        new_lines.append(line + "\n")
        return new_lines

    def _write(self, rule: PatchRule, original: Optional[str], new_text: str,
               reason: PatchReason, changed: int) -> PatchResult:
        path = rule.target_path

        if self.dry_run:
            self._staged[path] = new_text
            return self._result(rule, PatchStatus.APPLIED, reason, dry_run=True,
                                output=f"Would write {path}", lines_changed=changed)

        backup = None
        if original is None:
            self.backup_manager.mark_created(path)
        else:
            real_path = os.path.realpath(path)
            if not (os.access(real_path, os.W_OK) and os.access(Path(real_path).parent, os.W_OK)):
                return self._result(rule, PatchStatus.FAILED, PatchReason.PERMISSION_DENIED,
                                    error=f"Target is not writable: {path}")
            try:
                backup = self.backup_manager.ensure_backup(path)
            except BackupError as e:
                return self._result(rule, PatchStatus.FAILED, PatchReason.BACKUP_ERROR, error=str(e))

        try:
            atomic_write(path, new_text)
        except PermissionError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.PERMISSION_DENIED,
                                error=str(e), backup=backup)
        except OSError as e:
            return self._result(rule, PatchStatus.FAILED, PatchReason.WRITE_ERROR,
                                error=str(e), backup=backup)

        output = f"Created {path}" if original is None else f"Updated {path}"
        return self._result(rule, PatchStatus.APPLIED, reason, output=output,
                            backup=backup, lines_changed=changed)

    @staticmethod
    def _result(rule: Rule, status: PatchStatus, reason: PatchReason, **kwargs) -> PatchResult:
        return PatchResult(
            status=status,
            reason=reason,
            target_path=rule.target_path,
            description=rule.description,
            **kwargs
        )
