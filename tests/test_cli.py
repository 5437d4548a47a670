from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner
from sqlalchemy import text

from mailprefs.cli import cli
from mailprefs.config import Settings
from mailprefs.preferences import LEGACY_NAMESPACE, LEGACY_NOTIFICATIONS_NAMESPACE
from mailprefs.prefs_db.operations import (
    add_account,
    add_folders,
    get_prefs_db_engine,
    write_preferences,
)
from mailprefs.stores import SqlKeyValueStore, StorageWriteError
from mailprefs.upgrade import read_preferences_version

INBOX_URI = "content://mail/uifolder/1"


def _use_db(monkeypatch, db_path: Path, **overrides) -> None:
    monkeypatch.setattr(
        "mailprefs.cli._load_settings",
        lambda: Settings().with_overrides(prefs_db_path=db_path, **overrides),
    )
    monkeypatch.setattr("mailprefs.cli.configure_logging", lambda settings: None)


def _seed(db_path: Path) -> None:
    write_preferences(
        db_path,
        LEGACY_NAMESPACE,
        {"reply_all": True, "conversation_list_icon": "senderimage"},
    )
    write_preferences(
        db_path, LEGACY_NOTIFICATIONS_NAMESPACE, {"account_notify": False}
    )
    add_account(db_path, name="alice@example.com", default_inbox=INBOX_URI)
    add_folders(
        db_path,
        "alice@example.com",
        [{"persistent_id": "1", "name": "Inbox", "uri": INBOX_URI}],
    )
    add_account(db_path, name="nobox@example.com", default_inbox=None)


def test_cli_init_db_creates_database(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "nested" / "prefs.sqlite"
    _use_db(monkeypatch, db_path)

    result = CliRunner().invoke(cli, ["init-db"])

    assert result.exit_code == 0, result.output
    assert "schema version 1" in result.output
    assert db_path.exists()


def test_cli_migrate_reports_steps_and_folders(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["migrate"])

    assert result.exit_code == 0, result.output
    output = result.output
    assert "from version 0 to 3" in output
    assert "applied: global-and-folder-settings" in output
    assert "applied: sender-images" in output
    assert "folder: folder:alice@example.com:1" in output
    assert "skipped account: nobox@example.com" in output

    second = runner.invoke(cli, ["migrate"])
    assert second.exit_code == 0
    assert "already at version 3" in second.output


def test_cli_migrate_honours_target_version(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path)

    result = CliRunner().invoke(cli, ["migrate", "--target-version", "1"])

    assert result.exit_code == 0, result.output
    assert "sender-whitelist" not in result.output
    assert read_preferences_version(db_path) == 1


def test_cli_migrate_rejects_out_of_range_target(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _use_db(monkeypatch, db_path)

    result = CliRunner().invoke(cli, ["migrate", "--target-version", "9"])

    assert result.exit_code != 0
    assert "Target version must be between 0 and 3" in result.output


def test_cli_migrate_storage_failure_keeps_version(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path)

    def _fail(self, pending):
        raise StorageWriteError("disk full")

    monkeypatch.setattr(SqlKeyValueStore, "_flush", _fail)

    result = CliRunner().invoke(cli, ["migrate"])

    assert result.exit_code == 1
    assert "disk full" in result.output
    assert "left unchanged" in result.output
    assert read_preferences_version(db_path) == 0


def test_cli_migrate_undecodable_value_keeps_version(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path)
    with get_prefs_db_engine(db_path).begin() as conn:
        conn.execute(
            text(
                "UPDATE preferences SET value = 'uri:x' "
                "WHERE namespace = 'legacy_notifications' AND key = 'account_notify'"
            )
        )

    result = CliRunner().invoke(cli, ["migrate"])

    assert result.exit_code == 1
    assert "Undecodable" in result.output
    assert "left unchanged" in result.output
    assert read_preferences_version(db_path) == 0


def test_cli_status_lists_pending_then_clears(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path, tz="Europe/Amsterdam")
    runner = CliRunner()

    before = runner.invoke(cli, ["status"])
    assert before.exit_code == 0, before.output
    assert "Preference version: 0 (target 3)" in before.output
    assert "- sender-whitelist (below version 2)" in before.output
    assert "Last migrated" not in before.output

    runner.invoke(cli, ["migrate"])

    after = runner.invoke(cli, ["status"])
    assert after.exit_code == 0, after.output
    assert "Preference version: 3 (target 3)" in after.output
    assert "Last migrated:" in after.output
    assert "No pending preference migrations." in after.output


def test_cli_status_requires_database(tmp_path, monkeypatch) -> None:
    _use_db(monkeypatch, tmp_path / "missing.sqlite")

    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code != 0
    assert "run init-db first" in result.output


def test_cli_show_prefs_lists_namespace_values(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "prefs.sqlite"
    _seed(db_path)
    _use_db(monkeypatch, db_path)
    runner = CliRunner()
    runner.invoke(cli, ["migrate"])

    namespaces = runner.invoke(cli, ["show-prefs"])
    assert namespaces.exit_code == 0
    assert "mail" in namespaces.output.splitlines()
    assert "folder:alice@example.com:1" in namespaces.output

    mail = runner.invoke(cli, ["show-prefs", "--namespace", "mail"])
    assert mail.exit_code == 0
    assert "default-reply-all | true" in mail.output
    assert "conversation-list-sender-image | true" in mail.output
    assert "sender-whitelist | []" in mail.output

    empty = runner.invoke(cli, ["show-prefs", "--namespace", "nothing"])
    assert "No preferences stored under 'nothing'." in empty.output
