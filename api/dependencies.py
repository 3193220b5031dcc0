"""Shared dependencies and helper functions for API routers.

Usage in routers:
    from api.dependencies import get_current_user, get_gateway, serialize_task
"""
from __future__ import annotations

import os
from functools import lru_cache

from task_tracker.api.auth import get_current_user, get_optional_user  # noqa: F401 - re-export
from task_tracker.config import Settings, load_settings
from task_tracker.task_store import Task, TaskGateway, build_gateway


# =============================================================================
# Configuration Constants
# =============================================================================

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    os.getenv("TT_ALLOWED_FRONTEND", "").strip(),
]


# =============================================================================
# Cached Functions
# =============================================================================

@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return load_settings()


@lru_cache
def _gateway() -> TaskGateway:
    return build_gateway(get_settings())


def get_gateway() -> TaskGateway:
    """Gateway used by every request (overridable in tests)."""
    return _gateway()


# =============================================================================
# Serialization Helpers
# =============================================================================

def serialize_task(task: Task) -> dict:
    """Serialize a Task to API response format."""
    return task.to_api_dict()
