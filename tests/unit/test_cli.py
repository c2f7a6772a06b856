"""
Unit tests for the log-mailer CLI.
"""

import json

import pytest
from typer.testing import CliRunner

from log_mailer.cli import app
from log_mailer.coordinator import FileLogStore
from log_mailer.models import LogRecord

runner = CliRunner()


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_MAILER_SMTP_HOST", "localhost")
    monkeypatch.setenv("LOG_MAILER_SMTP_PORT", "2525")
    monkeypatch.setenv("LOG_MAILER_FROM_EMAIL", "app@example.com")
    monkeypatch.setenv("LOG_MAILER_TO_EMAILS", "ops@example.com")
    monkeypatch.setenv("LOG_MAILER_PASSWORD", "hunter2")
    monkeypatch.setenv("LOG_MAILER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_MAILER_PART_DELAY_SEC", "0")
    return tmp_path


def last_json(output: str):
    return json.loads(output.strip().splitlines()[-1])


def test_config_hides_password(env):
    """Test config prints settings without the password."""
    result = runner.invoke(app, ["config", "--profile", "critical"])
    assert result.exit_code == 0
    out = json.loads(result.output)
    assert "hunter2" not in result.output
    assert out["has_password"] is True
    assert out["immediate_error_threshold"] == 1


def test_missing_settings_exit_code(monkeypatch, tmp_path):
    """Test invalid configuration exits with code 2."""
    monkeypatch.chdir(tmp_path)
    for key in ("SMTP_HOST", "SMTP_PORT", "FROM_EMAIL", "TO_EMAILS"):
        monkeypatch.delenv(f"LOG_MAILER_{key}", raising=False)
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 2


def test_unknown_profile(env):
    """Test an unknown profile is a configuration error."""
    assert runner.invoke(app, ["config", "--profile", "nope"]).exit_code == 2


def test_stats_and_retained(env):
    """Test stats and retained report the live file and leftover snapshots."""
    store = FileLogStore(env / "logs")
    store.append(LogRecord(level="ERROR", message="old").to_line())
    leftover = store.detach_and_reset()
    store.append(LogRecord(level="INFO", message="new").to_line())
    store.close()

    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    stats = json.loads(result.output)
    assert stats["live_bytes"] > 0
    assert stats["retained_snapshots"] == 1
    assert stats["retained_snapshot_path"] == str(leftover)
    assert stats["next_send_time"] is not None

    result = runner.invoke(app, ["retained"])
    assert result.exit_code == 0
    assert last_json(result.output)["path"] == str(leftover)


def test_send_test_dry_run(env):
    """Test send-test in dry-run mode delivers through the in-memory transport."""
    result = runner.invoke(app, ["send-test", "--dry-run", "-m", "hello from cli"])
    assert result.exit_code == 0, result.output
    assert last_json(result.output) == {"result": "delivered", "parts": 1}


def test_resend_dry_run_deletes_snapshot(env):
    """Test resending a retained snapshot removes it once delivered."""
    store = FileLogStore(env / "logs")
    store.append(LogRecord(level="ERROR", message="undelivered").to_line())
    leftover = store.detach_and_reset()
    store.close()

    result = runner.invoke(app, ["resend", str(leftover), "--dry-run"])
    assert result.exit_code == 0, result.output
    assert not leftover.exists()


def test_resend_leaves_live_file_alone(env):
    """Test resend only delivers the given snapshot; the app's live buffer keeps receiving."""
    app_store = FileLogStore(env / "logs")
    app_store.append(LogRecord(level="ERROR", message="undelivered").to_line())
    leftover = app_store.detach_and_reset()
    app_store.append(LogRecord(level="INFO", message="app-1").to_line())

    result = runner.invoke(app, ["resend", str(leftover), "--dry-run"])
    assert result.exit_code == 0, result.output

    app_store.append(LogRecord(level="INFO", message="app-2").to_line())
    live = app_store.live_path.read_bytes()
    assert b"app-1" in live and b"app-2" in live
    assert app_store.list_detached() == []
    app_store.close()


def test_send_test_does_not_touch_live_file(env):
    """Test send-test works in a scratch directory, not the configured log directory."""
    app_store = FileLogStore(env / "logs")
    app_store.append(LogRecord(level="INFO", message="app-1").to_line())
    before = app_store.live_path.read_bytes()

    result = runner.invoke(app, ["send-test", "--dry-run"])
    assert result.exit_code == 0, result.output

    assert app_store.live_path.read_bytes() == before
    assert app_store.list_detached() == []
    app_store.close()
