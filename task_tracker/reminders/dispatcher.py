"""Reminder delivery for tasks that are about to fall due."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from ..mailer.gmail import GmailAccountConfig, GmailError, load_account_from_env, send_email

logger = logging.getLogger(__name__)


class ReminderError(RuntimeError):
    """Raised when a reminder cannot be delivered."""


class ReminderDispatcher(Protocol):
    def send_reminder(self, recipient: str, task_title: str, due_display: str) -> bool:
        """Deliver one reminder; return False when delivery failed."""


def format_due(due_at: datetime, timezone: str = "America/New_York") -> str:
    """Render a due timestamp for humans, e.g. 'Saturday, October 17, 2026 at 08:00 PM'."""
    local = due_at.astimezone(ZoneInfo(timezone))
    return f"{local:%A, %B} {local.day}, {local:%Y at %I:%M %p}"


class GmailReminderDispatcher:
    """Sends reminder emails from a configured Gmail account."""

    def __init__(self, account: GmailAccountConfig, lead_hours: float = 12.0) -> None:
        self.account = account
        self.lead_hours = lead_hours

    @classmethod
    def from_env(cls, account_name: str, lead_hours: float = 12.0) -> "GmailReminderDispatcher":
        try:
            account = load_account_from_env(account_name)
        except GmailError as exc:
            raise ReminderError(str(exc)) from exc
        return cls(account, lead_hours)

    def _subject(self, task_title: str) -> str:
        hours = f"{self.lead_hours:g}"
        return f'Reminder: Task "{task_title}" is due in {hours} hours'

    def send_reminder(self, recipient: str, task_title: str, due_display: str) -> bool:
        body = (
            f"Your task \"{task_title}\" is due on {due_display}.\n\n"
            "You are receiving this because reminders are enabled for this task."
        )
        try:
            message_id = send_email(
                self.account,
                to_address=recipient,
                subject=self._subject(task_title),
                body=body,
            )
        except GmailError as exc:
            logger.error(f"Reminder email to {recipient} failed: {exc}")
            return False

        logger.info(f"Reminder email sent to {recipient} for task \"{task_title}\" ({message_id})")
        return True
