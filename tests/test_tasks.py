import logging

import pytest
import yaml
from invoke import MockContext, Result
from invoke.exceptions import Exit

from confpatch.__main__ import main
from tasks.backups import list_backups, restore_backups
from tasks.patching import list_rulesets, patch, show_rules

from conftest import LOGIN_DEFS, RUN_DATE, snapshot, write


@pytest.fixture(autouse=True)
def restore_root_logging(tmp_path, monkeypatch):
    # Tasks replace the root handlers and write logs/ under the working directory
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(fake_root, tmp_path):
    config = {
        'root': str(fake_root),
        'rulesets': ['login_defs', 'pam_password'],
        'report_dir': str(tmp_path / "reports"),
    }
    return str(write(tmp_path / "config.yaml", yaml.safe_dump(config)))


def test_patch_dry_run(fake_root, config_file, tmp_path):
    before = snapshot(fake_root)

    result = patch(MockContext(), config=config_file, dry_run=True)

    assert snapshot(fake_root) == before
    assert not result['failed']
    assert list((tmp_path / "logs" / "patch").glob("*.log"))


def test_patch_unknown_ruleset_aborts(config_file):
    with pytest.raises(Exit) as excinfo:
        patch(MockContext(), config=config_file, rulesets="login_defs,firewall")

    assert excinfo.value.code == 2


def test_patch_failed_command_still_exits_zero(fake_root, config_file, tmp_path):
    rules_file = write(tmp_path / "rules.yaml", """\
rules:
  - target_path: /etc/login.defs
    match_pattern: '^UMASK\\b'
    append_if_absent: "UMASK\\t027"
post_apply:
  - command: svc check
    description: Check service
""")
    runner = MockContext(run={"svc check": Result(stderr="bad\n", exited=1)}, repeat=True)

    result = patch(runner, config=config_file, rulesets="custom", rules_file=str(rules_file))

    assert not result['failed']
    assert not result['commands']['custom'][0].success
    assert (fake_root / "etc" / "login.defs").read_text().endswith("UMASK\t027\n")


def test_patch_failed_rule_exits_nonzero(fake_root, config_file, monkeypatch):
    def disk_full(path, text):
        raise OSError(28, "No space left on device", str(path))

    monkeypatch.setattr("confpatch.patcher.atomic_write", disk_full)

    with pytest.raises(Exit) as excinfo:
        patch(MockContext(), config=config_file)

    assert excinfo.value.code == 1


def test_patch_rules_file_syntax_error_aborts(fake_root, config_file, tmp_path):
    rules_file = write(tmp_path / "rules.yaml", "rules: [\n  - : :\n")
    before = snapshot(fake_root)

    with pytest.raises(Exit) as excinfo:
        patch(MockContext(), config=config_file, rulesets="login_defs,custom", rules_file=str(rules_file))

    assert excinfo.value.code == 2
    assert snapshot(fake_root) == before


def test_list_rulesets(config_file, capsys):
    list_rulesets(MockContext(), config=config_file)

    out = capsys.readouterr().out
    assert " 1. login_defs" in out
    assert " 6. custom" in out


def test_show_rules(config_file, capsys):
    show_rules(MockContext(), "ssh_hardening", config=config_file)

    out = capsys.readouterr().out
    assert "PermitRootLogin no" in out
    assert "post-apply: sshd -t -f" in out


def test_restore_backups_after_patch(fake_root, config_file):
    patch(MockContext(), config=config_file)
    login_defs = fake_root / "etc" / "login.defs"
    assert login_defs.read_text() != LOGIN_DEFS

    records = list_backups(MockContext(), config=config_file)
    assert len(records) == 2
    assert len({r.run_date for r in records}) == 1

    restore_backups(MockContext(), records[0].run_date, config=config_file)

    assert login_defs.read_text() == LOGIN_DEFS


def test_restore_backups_without_backups(config_file):
    with pytest.raises(Exit) as excinfo:
        restore_backups(MockContext(), RUN_DATE, config=config_file)

    assert excinfo.value.code == 1


def test_main_dry_run(config_file):
    assert main(["--config", config_file, "--dry-run"]) == 0


def test_main_unknown_ruleset(config_file):
    assert main(["--config", config_file, "-r", "firewall"]) == 2
