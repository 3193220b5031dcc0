"""Task analytics."""
from __future__ import annotations

from .stats import TaskStats, summarize_tasks

__all__ = ["TaskStats", "summarize_tasks"]
