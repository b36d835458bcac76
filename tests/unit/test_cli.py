import asyncio
import logging

import pytest
from typer.testing import CliRunner

import vestry.store as store_module
from vestry.cli import app
from vestry.store import InMemoryStateStore
from vestry.utils.logs import HANDLER_NAME

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    monkeypatch.setenv("VESTRY_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("VESTRY_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SCHEDULER_NOW_ISO", raising=False)
    store_module._store_instance = InMemoryStateStore()
    yield store_module._store_instance
    store_module._store_instance = None
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == HANDLER_NAME:
            root.removeHandler(handler)


def test_state_show_missing_session():
    result = runner.invoke(app, ["state", "show", "42", "schedule"])
    assert result.exit_code == 1
    assert "Session not found" in result.output


def test_state_show_and_cancel(_isolated):
    payload = {
        "subject_id": "42",
        "conversation_id": "42",
        "kind": "schedule",
        "step": "title",
        "data": {"mode": "create"},
        "waiting_for_free_text": True,
        "schema_version": 1,
    }
    asyncio.run(_isolated.set("42", "schedule", payload))

    result = runner.invoke(app, ["state", "show", "42", "schedule"])
    assert result.exit_code == 0
    assert "Step: title" in result.output
    assert '"mode": "create"' in result.output

    result = runner.invoke(app, ["state", "cancel", "42", "schedule"])
    assert result.exit_code == 0
    assert "Cancelled schedule for 42" in result.output
    assert asyncio.run(_isolated.get("42", "schedule")) is None


def test_schedule_due_lists_jobs():
    result = runner.invoke(app, ["schedule", "due", "--now", "2025-01-20T09:05:00+03:00"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "Local time: 2025-01-20T09:05:00 (Europe/Moscow)" in lines
    weekly = next(line for line in lines if line.startswith("weekly_schedule:"))
    assert weekly.endswith(" due") and "not due" not in weekly
    admin = next(line for line in lines if line.startswith("admin_weekly_schedule:"))
    assert admin.endswith("not due")


def test_schedule_window():
    result = runner.invoke(app, ["schedule", "window", "2025-01-20T19:00:00+03:00"])
    assert result.exit_code == 0
    assert "Window: 2025-01-19T19:00:00+03:00 .. 2025-01-19T19:15:00+03:00" in result.output


def test_schedule_window_needs_offset():
    result = runner.invoke(app, ["schedule", "window", "2025-01-20T19:00:00"])
    assert result.exit_code == 1
    result = runner.invoke(app, ["schedule", "window", "tomorrow"])
    assert result.exit_code == 1
