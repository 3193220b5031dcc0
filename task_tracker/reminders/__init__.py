"""Due-soon task reminders."""
from __future__ import annotations

from .dispatcher import (
    GmailReminderDispatcher,
    ReminderDispatcher,
    ReminderError,
    format_due,
)
from .notifier import DueSoonNotifier, is_due_soon

__all__ = [
    "DueSoonNotifier",
    "GmailReminderDispatcher",
    "ReminderDispatcher",
    "ReminderError",
    "format_due",
    "is_due_soon",
]
