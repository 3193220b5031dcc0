"""Due-soon reminder scanner.

Runs once when started and then every ``interval_seconds``. A task is due
soon when it has a due date, reminders are enabled, it is not completed, no
reminder has gone out for it yet, and the hours left until it is due are
within ``window_hours`` of ``lead_hours``.

The window must be wider than the scan interval or a task can slip through
between two scans; ``validate_reminder_timing`` enforces that for loaded
settings.

After a successful send the task's ``notification_sent`` flag is written
through the gateway. The local list catches up through the engine's normal
re-fetch, so the notifier also remembers what it sent in this run.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, Set, Tuple

from ..sync.engine import Identity
from ..task_store.gateway import RemoteError, TaskGateway
from ..task_store.models import Task, TaskStatus
from .dispatcher import ReminderDispatcher, format_due

logger = logging.getLogger(__name__)

TaskProvider = Callable[[], Sequence[Task]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hours_until(due_at: datetime, now: datetime) -> float:
    return (due_at - now).total_seconds() / 3600


def is_due_soon(
    task: Task,
    now: datetime,
    lead_hours: float = 12.0,
    window_hours: float = 0.1,
) -> bool:
    """Return True when ``task`` should get its reminder at ``now``."""
    if task.due_at is None or not task.notifications_enabled:
        return False
    if task.status == TaskStatus.COMPLETED or task.notification_sent:
        return False
    return abs(hours_until(task.due_at, now) - lead_hours) <= window_hours


class DueSoonNotifier:
    """Periodically sends one reminder per task and due date."""

    def __init__(
        self,
        gateway: TaskGateway,
        dispatcher: ReminderDispatcher,
        tasks: TaskProvider,
        user: Identity,
        *,
        lead_hours: float = 12.0,
        window_hours: float = 0.1,
        interval_seconds: float = 300.0,
        timezone_name: str = "America/New_York",
        clock: Clock = _utcnow,
    ) -> None:
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._tasks = tasks
        self._user = user
        self.lead_hours = lead_hours
        self.window_hours = window_hours
        self.interval_seconds = interval_seconds
        self.timezone_name = timezone_name
        self._clock = clock
        self._sent: Set[Tuple[str, datetime]] = set()
        self._runner: Optional[asyncio.Task] = None

    def eligible(self, now: datetime) -> list[Task]:
        return [
            task
            for task in self._tasks()
            if is_due_soon(task, now, self.lead_hours, self.window_hours)
            and (task.id, task.due_at) not in self._sent
        ]

    async def scan(self, now: Optional[datetime] = None) -> int:
        """Send reminders for every task due soon; return how many went out."""
        now = now or self._clock()
        sent = 0
        for task in self.eligible(now):
            due_display = format_due(task.due_at, self.timezone_name)
            try:
                delivered = await asyncio.to_thread(
                    self._dispatcher.send_reminder,
                    self._user.email,
                    task.title,
                    due_display,
                )
            except Exception:
                logger.exception(f"Reminder dispatch raised for task {task.id}")
                delivered = False

            if not delivered:
                logger.warning(f"Reminder for task {task.id} not delivered; will retry next scan")
                continue

            self._sent.add((task.id, task.due_at))
            sent += 1
            try:
                await asyncio.to_thread(
                    self._gateway.update,
                    task.id,
                    {"notification_sent": True},
                    self._user.user_id,
                )
            except RemoteError as exc:
                logger.error(f"Could not mark reminder sent for task {task.id}: {exc}")

        if sent:
            logger.info(f"Sent {sent} due-soon reminder(s) to {self._user.email}")
        return sent

    async def run(self) -> None:
        """Scan now, then every ``interval_seconds`` until cancelled."""
        while True:
            try:
                await self.scan()
            except Exception:
                logger.exception("Reminder scan failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        if self._runner is None or self._runner.done():
            self._runner = asyncio.create_task(self.run())
        return self._runner

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        runner.cancel()
        try:
            await runner
        except asyncio.CancelledError:
            pass
