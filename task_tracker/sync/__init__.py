"""Sync module keeping an in-memory task list in step with the remote store."""
from __future__ import annotations

from .engine import (
    EngineState,
    Identity,
    NotAuthenticated,
    TaskSyncEngine,
)

__all__ = [
    "EngineState",
    "Identity",
    "NotAuthenticated",
    "TaskSyncEngine",
]
