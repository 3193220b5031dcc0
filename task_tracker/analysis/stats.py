"""Summary statistics for a task list."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable

from ..task_store.models import Task, TaskStatus


STATUS_LABELS = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
}


@dataclass(slots=True)
class TaskStats:
    """Counts behind the analytics view."""

    total: int = 0
    by_status: Dict[str, int] = field(
        default_factory=lambda: {status.value: 0 for status in TaskStatus}
    )
    overdue: int = 0
    due_within_day: int = 0

    @property
    def completion_rate(self) -> float:
        if not self.total:
            return 0.0
        return self.by_status[TaskStatus.COMPLETED.value] / self.total

    def to_api_dict(self) -> dict:
        return {
            "total": self.total,
            "byStatus": [
                {"status": status.value, "label": STATUS_LABELS[status], "count": self.by_status[status.value]}
                for status in TaskStatus
            ],
            "completionRate": round(self.completion_rate, 4),
            "overdue": self.overdue,
            "dueWithinDay": self.due_within_day,
        }


def summarize_tasks(tasks: Iterable[Task], *, now: datetime | None = None) -> TaskStats:
    """Count tasks by status and by open deadlines.

    Completed tasks never count as overdue or due soon.
    """

    now = now or datetime.now(timezone.utc)
    horizon = now + timedelta(days=1)
    stats = TaskStats()
    for task in tasks:
        stats.total += 1
        stats.by_status[task.status.value] += 1
        if task.status == TaskStatus.COMPLETED or task.due_at is None:
            continue
        if task.due_at < now:
            stats.overdue += 1
        elif task.due_at <= horizon:
            stats.due_within_day += 1
    return stats
