"""
Whole-file reads and atomic writes for configuration files
"""

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# surrogateescape keeps undecodable bytes intact across a read/write cycle
ENCODING = "utf-8"
ERRORS = "surrogateescape"


def read_text(path: Union[str, Path]) -> str:
    """Read a file verbatim, line endings included"""
    with open(path, "r", encoding=ENCODING, errors=ERRORS, newline="") as f:
        return f.read()


def atomic_write(path: Union[str, Path], text: str) -> None:
    """
    Replace the contents of path with text.

    The new contents go to a temp file in the same directory which is fsynced
    and renamed over the target, so the target is either the old file or the
    new one. Permission bits and ownership of an existing target are copied
    onto the temp file before the rename. A symlinked target keeps its link;
    the file it points to is replaced.
    """
    path = Path(os.path.realpath(path))
    original = path.stat() if path.exists() else None

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding=ENCODING, errors=ERRORS, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        if original is not None:
            os.chmod(tmp_name, stat.S_IMODE(original.st_mode))
            _copy_ownership(tmp_name, original)

        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise

    logger.debug(f"Wrote {len(text)} characters to {path}")


def _copy_ownership(tmp_name: str, original: os.stat_result) -> None:
    current = os.stat(tmp_name)
    if (current.st_uid, current.st_gid) != (original.st_uid, original.st_gid):
        os.chown(tmp_name, original.st_uid, original.st_gid)
