"""Status filter view over a task list."""
from __future__ import annotations

from typing import List, Sequence

from .task_store.models import Task, TaskStatus

ALL = "all"
TASK_FILTERS = (ALL,) + tuple(status.value for status in TaskStatus)


def normalize_filter(selected: str | TaskStatus) -> str:
    """Return the canonical filter value, rejecting unknown ones."""
    value = selected.value if isinstance(selected, TaskStatus) else str(selected)
    if value not in TASK_FILTERS:
        raise ValueError(f"Invalid filter {selected!r}; expected one of: {', '.join(TASK_FILTERS)}")
    return value


def filter_tasks(tasks: Sequence[Task], selected: str | TaskStatus = ALL) -> List[Task]:
    """Return the tasks matching ``selected``, keeping their order."""
    value = normalize_filter(selected)
    if value == ALL:
        return list(tasks)
    return [task for task in tasks if task.status.value == value]
