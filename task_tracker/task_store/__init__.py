"""Task store package - task data model and remote store gateway."""
from __future__ import annotations

from .gateway import (
    ChangeFeed,
    FileTaskGateway,
    FirestoreTaskGateway,
    RemoteError,
    TableNotFound,
    TaskGateway,
    build_gateway,
)
from .models import Task, TaskStatus

__all__ = [
    "ChangeFeed",
    "FileTaskGateway",
    "FirestoreTaskGateway",
    "RemoteError",
    "TableNotFound",
    "Task",
    "TaskGateway",
    "TaskStatus",
    "build_gateway",
]
