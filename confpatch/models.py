import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class RuleError(ValueError):
    """Raised when a rule definition is invalid"""


class PatchStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class PatchReason(Enum):
    REPLACED = "replaced"
    APPENDED = "appended"
    MODE_CHANGED = "mode_changed"
    FILE_NOT_FOUND = "file_not_found"
    ALREADY_APPLIED = "already_applied"
    NO_MATCH = "no_match"
    PERMISSION_DENIED = "permission_denied"
    READ_ERROR = "read_error"
    BACKUP_ERROR = "backup_error"
    WRITE_ERROR = "write_error"


_GROUP_REF = re.compile(r"\\(\d+)|\\g<([^>]+)>")


def _compile(pattern: str, field_name: str):
    try:
        return re.compile(pattern)
    except re.error as e:
        raise RuleError(f"Invalid {field_name} {pattern!r}: {e}")


@dataclass
class PatchRule:
    """One idempotent line-level edit to one text configuration file"""
    target_path: str
    match_pattern: str
    replacement_line: Optional[str] = None
    append_if_absent: Optional[str] = None
    idempotence_check: Optional[str] = None
    description: str = ""
    expand_groups: bool = False  # replacement_line is a regex template (\1, \g<name>)
    create: bool = False  # treat a missing file as empty if its directory exists
    insert_before: Optional[str] = None  # appended lines go above the first line matching this

    def __post_init__(self):
        if not self.target_path:
            raise RuleError("target_path is required")
        if not self.match_pattern:
            raise RuleError(f"match_pattern is required ({self.target_path})")
        if self.replacement_line is None and self.append_if_absent is None:
            raise RuleError(
                f"Rule for {self.target_path} needs replacement_line or append_if_absent"
            )
        for line in (self.replacement_line, self.append_if_absent):
            if line is not None and ("\n" in line or "\r" in line):
                raise RuleError(f"Rule lines must be single lines: {line!r}")
        self.match_re = _compile(self.match_pattern, "match_pattern")
        self.check_re = (
            _compile(self.idempotence_check, "idempotence_check")
            if self.idempotence_check else None
        )
        self.insert_re = (
            _compile(self.insert_before, "insert_before") if self.insert_before else None
        )
        if self.expand_groups and self.replacement_line is not None:
            self._check_template()
        if not self.description:
            self.description = f"Patch {self.match_pattern} in {self.target_path}"

    def _check_template(self):
        for number, name in _GROUP_REF.findall(self.replacement_line):
            ref = number or name
            if ref.isdigit():
                valid = int(ref) <= self.match_re.groups
            else:
                valid = ref in self.match_re.groupindex
            if not valid:
                raise RuleError(
                    f"replacement_line refers to unknown group {ref!r} of {self.match_pattern!r}"
                )


@dataclass
class ModeRule:
    """Permission bits to enforce on a file or directory tree"""
    target_path: str
    mode: Optional[int] = None
    clear_bits: Optional[int] = None  # e.g. 0o022 for go-w
    recursive: bool = False
    description: str = ""

    def __post_init__(self):
        if not self.target_path:
            raise RuleError("target_path is required")
        if (self.mode is None) == (self.clear_bits is None):
            raise RuleError(f"ModeRule for {self.target_path} needs exactly one of mode or clear_bits")
        for value in (self.mode, self.clear_bits):
            if value is not None and not 0 <= value <= 0o7777:
                raise RuleError(f"Invalid permission bits {oct(value)} for {self.target_path}")
        if not self.description:
            if self.mode is not None:
                self.description = f"Set {self.target_path} permissions to {self.mode:o}"
            else:
                self.description = f"Clear {self.clear_bits:03o} on {self.target_path}"

    def target_mode(self, current: int) -> int:
        if self.mode is not None:
            return self.mode
        return current & ~self.clear_bits


@dataclass
class BackupRecord:
    """Safety copy of a target made before its first mutation in a run"""
    original_path: str
    backup_path: str
    run_date: str
    reused: bool = False  # backup of the same name already existed and was kept


@dataclass
class PatchResult:
    """Result of applying one rule"""
    status: PatchStatus
    reason: PatchReason
    target_path: str
    description: str
    output: str = ""
    error: Optional[str] = None
    backup: Optional[BackupRecord] = None
    dry_run: bool = False
    lines_changed: int = 0

    @property
    def success(self) -> bool:
        return self.status is not PatchStatus.FAILED

    @property
    def already_applied(self) -> bool:
        return self.reason is PatchReason.ALREADY_APPLIED

    @property
    def changed(self) -> bool:
        return self.status is PatchStatus.APPLIED

    def __str__(self) -> str:
        label = f"{self.status.value.capitalize()}({self.reason.value})"
        if self.error:
            return f"{label} {self.target_path}: {self.error}"
        return f"{label} {self.target_path}"


@dataclass
class CommandResult:
    """Result of a post-apply shell command"""
    success: bool
    command: str
    description: str
    output: str = ""
    error: Optional[str] = None


@dataclass
class PostApplyCommand:
    command: str
    description: str = ""
    required: bool = True  # a failure stops the remaining commands of the set

    def __post_init__(self):
        if not self.description:
            self.description = f"Run {self.command}"


def count_by_status(results: List[PatchResult]) -> dict:
    counts = {status: 0 for status in PatchStatus}
    for result in results:
        counts[result.status] += 1
    return counts
