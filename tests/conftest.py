import os

import pytest

from confpatch.patcher import ConfigPatcher

RUN_DATE = "2026-10-19"

LOGIN_DEFS = """\
MAIL_DIR        /var/mail
PASS_MAX_DAYS\t99999
PASS_MIN_DAYS\t0
PASS_WARN_AGE\t7
UID_MIN                  1000
"""

COMMON_PASSWORD = """\
# here are the per-package modules (the "Primary" block)
password\t[success=1 default=ignore]\tpam_unix.so obscure yescrypt
password\trequisite\t\t\tpam_deny.so
"""

SSHD_CONFIG = """\
Include /etc/ssh/sshd_config.d/*.conf
#Port 22
#PermitRootLogin prohibit-password
ChallengeResponseAuthentication no
X11Forwarding yes
#ClientAliveInterval 0
#ClientAliveCountMax 3
UsePAM yes
"""

FSTAB = """\
# /etc/fstab: static file system information.
UUID=1234 / ext4 errors=remount-ro 0 1
"""


def write(path, text, mode=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    if mode is not None:
        os.chmod(path, mode)
    return path


@pytest.fixture
def patcher():
    return ConfigPatcher(run_date=RUN_DATE)


@pytest.fixture
def fake_root(tmp_path):
    """A minimal Debian-like tree for running the built-in rule sets"""
    root = tmp_path / "root"
    etc = root / "etc"
    write(etc / "login.defs", LOGIN_DEFS, 0o644)
    write(etc / "pam.d" / "common-password", COMMON_PASSWORD, 0o644)
    write(etc / "ssh" / "sshd_config", SSHD_CONFIG, 0o644)
    write(etc / "fstab", FSTAB, 0o644)
    write(etc / "shadow", "root:*:19000:0:99999:7:::\n", 0o640)
    write(etc / "passwd", "root:x:0:0:root:/root:/bin/bash\n", 0o644)
    write(etc / "group", "root:x:0:\n", 0o644)
    write(etc / "sudoers", "root ALL=(ALL:ALL) ALL\n", 0o440)
    write(etc / "crontab", "SHELL=/bin/sh\n", 0o644)
    write(etc / "cron.d" / "e2scrub_all", "30 3 * * 0 root true\n", 0o664)
    (etc / "sysctl.d").mkdir()
    (root / "var" / "tmp").mkdir(parents=True)
    os.chmod(root / "var" / "tmp", 0o755)
    return root


def snapshot(root):
    """Contents and modes of every file under root"""
    state = {}
    for path in sorted(root.rglob("*")):
        if path.is_file():
            state[str(path)] = (path.read_bytes(), os.stat(path).st_mode)
    return state
