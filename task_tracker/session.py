"""Wiring for one signed-in user's task session."""
from __future__ import annotations

import logging
from typing import Optional

from .config import Settings
from .reminders.dispatcher import ReminderDispatcher
from .reminders.notifier import DueSoonNotifier
from .sync.engine import Identity, TaskSyncEngine
from .task_store.gateway import TaskGateway

logger = logging.getLogger(__name__)


class TaskSession:
    """Runs the sync engine and, when a dispatcher is given, the reminder scanner.

    Usage:
        session = TaskSession(gateway, settings, dispatcher)
        await session.start(Identity(user_id="u1", email="me@example.com"))
        ...
        await session.close()
    """

    def __init__(
        self,
        gateway: TaskGateway,
        settings: Settings,
        dispatcher: Optional[ReminderDispatcher] = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings
        self.dispatcher = dispatcher
        self.engine = TaskSyncEngine(gateway)
        self.notifier: Optional[DueSoonNotifier] = None

    async def start(self, user: Identity) -> None:
        if self.engine.user is not None:
            await self.close()
        await self.engine.sign_in(user)
        if self.dispatcher is None:
            logger.info("No reminder dispatcher configured; due-soon reminders disabled")
            return
        self.notifier = DueSoonNotifier(
            self.gateway,
            self.dispatcher,
            lambda: self.engine.tasks,
            user,
            lead_hours=self.settings.reminder_lead_hours,
            window_hours=self.settings.reminder_window_hours,
            interval_seconds=self.settings.reminder_interval_seconds,
            timezone_name=self.settings.timezone,
        )
        self.notifier.start()

    async def close(self) -> None:
        if self.notifier is not None:
            await self.notifier.stop()
            self.notifier = None
        self.engine.sign_out()
