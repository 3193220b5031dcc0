"""Tests for reminder formatting and the Gmail reminder dispatcher."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from task_tracker.mailer import GmailAccountConfig, GmailError
from task_tracker.reminders import GmailReminderDispatcher, ReminderError, format_due
from task_tracker.reminders import dispatcher as dispatcher_module

ACCOUNT = GmailAccountConfig(
    name="personal",
    client_id="cid",
    client_secret="secret",
    refresh_token="refresh",
    from_address="tracker@example.com",
)


def test_format_due_in_utc():
    due = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    assert format_due(due, "UTC") == "Saturday, October 17, 2026 at 12:00 PM"


def test_format_due_in_new_york():
    due = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    assert format_due(due) == "Saturday, October 17, 2026 at 08:00 AM"


def test_send_reminder_builds_email(monkeypatch):
    sent = {}

    def fake_send(account, *, to_address, subject, body):
        sent.update(account=account, to=to_address, subject=subject, body=body)
        return "msg-1"

    monkeypatch.setattr(dispatcher_module, "send_email", fake_send)
    reminder = GmailReminderDispatcher(ACCOUNT, lead_hours=12)

    assert reminder.send_reminder("alice@example.com", "Pay rent", "Saturday, October 17, 2026 at 08:00 AM")
    assert sent["account"] is ACCOUNT
    assert sent["to"] == "alice@example.com"
    assert sent["subject"] == 'Reminder: Task "Pay rent" is due in 12 hours'
    assert "Saturday, October 17, 2026 at 08:00 AM" in sent["body"]


def test_send_failure_returns_false(monkeypatch):
    def failing_send(account, **kwargs):
        raise GmailError("quota exceeded")

    monkeypatch.setattr(dispatcher_module, "send_email", failing_send)
    reminder = GmailReminderDispatcher(ACCOUNT)

    assert reminder.send_reminder("alice@example.com", "Pay rent", "soon") is False


def test_from_env_loads_account(monkeypatch):
    monkeypatch.setenv("PERSONAL_GMAIL_CLIENT_ID", "cid")
    monkeypatch.setenv("PERSONAL_GMAIL_CLIENT_SECRET", "secret")
    monkeypatch.setenv("PERSONAL_GMAIL_REFRESH_TOKEN", "refresh")
    monkeypatch.setenv("PERSONAL_GMAIL_ADDRESS", "tracker@example.com")

    reminder = GmailReminderDispatcher.from_env("personal", lead_hours=6)

    assert reminder.account.from_address == "tracker@example.com"
    assert reminder.lead_hours == 6


def test_from_env_missing_credentials(monkeypatch):
    for suffix in ("CLIENT_ID", "CLIENT_SECRET", "REFRESH_TOKEN", "ADDRESS"):
        monkeypatch.delenv(f"NOBODY_GMAIL_{suffix}", raising=False)

    with pytest.raises(ReminderError, match="CLIENT_ID"):
        GmailReminderDispatcher.from_env("nobody")
