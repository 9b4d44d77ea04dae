"""
Backup handling for patched configuration files
One backup per target per run, named <original-name><suffix><run-date>
"""

import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .fileio import atomic_write, read_text
from .models import BackupRecord

logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".bak_"


class BackupError(Exception):
    """Raised when a safety copy cannot be made"""


def backup_path_for(path: str, run_date: str, suffix: str = DEFAULT_SUFFIX) -> Path:
    original = Path(path)
    return original.with_name(f"{original.name}{suffix}{run_date}")


class BackupManager:
    """Tracks which targets have been backed up during the current run"""

    def __init__(self, run_date: str, suffix: str = DEFAULT_SUFFIX):
        self.run_date = run_date
        self.suffix = suffix
        self._records: Dict[str, Optional[BackupRecord]] = {}

    @property
    def records(self) -> List[BackupRecord]:
        return [r for r in self._records.values() if r is not None]

    def has_backup(self, path: str) -> bool:
        return str(path) in self._records

    def mark_created(self, path: str) -> None:
        """A file created by this run has no original bytes to keep"""
        self._records.setdefault(str(path), None)

    def ensure_backup(self, path: str) -> Optional[BackupRecord]:
        """
        Copy path to its backup location the first time it is called for path.

        Returns the new record on the first call and None afterwards. An
        existing backup with the same name (an earlier run on the same day) is
        kept as-is, since it holds the older original.
        """
        key = str(path)
        if key in self._records:
            return None

        destination = backup_path_for(key, self.run_date, self.suffix)
        if destination.exists():
            logger.info(f"Backup already present, keeping it: {destination}")
            record = BackupRecord(key, str(destination), self.run_date, reused=True)
        else:
            try:
                shutil.copy2(key, destination)
            except OSError as e:
                raise BackupError(f"Could not back up {key} to {destination}: {e}") from e
            logger.info(f"Backup created: {destination}")
            record = BackupRecord(key, str(destination), self.run_date)

        self._records[key] = record
        return record


def find_backups(paths: Iterable[str], run_date: Optional[str] = None,
                 suffix: str = DEFAULT_SUFFIX) -> List[BackupRecord]:
    """Find existing backups of the given targets, optionally for one run date"""
    found = []
    for path in paths:
        original = Path(path)
        if not original.parent.is_dir():
            continue
        prefix = f"{original.name}{suffix}"
        for candidate in sorted(original.parent.glob(f"{original.name}{suffix}*")):
            date = candidate.name[len(prefix):]
            if run_date and date != run_date:
                continue
            found.append(BackupRecord(str(original), str(candidate), date))
    return found


def restore_backup(record: BackupRecord) -> None:
    """Put the backed-up contents back in place of the original"""
    atomic_write(record.original_path, read_text(record.backup_path))
    logger.info(f"Restored {record.original_path} from {record.backup_path}")
