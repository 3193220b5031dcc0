"""Tasks Router - owner-scoped task CRUD and analytics.

Handles:
- Task listing with an optional status filter
- Task CRUD
- Per-status analytics for the dashboard
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_current_user, get_gateway, serialize_task
from task_tracker.analysis import summarize_tasks
from task_tracker.filters import filter_tasks
from task_tracker.sync import Identity
from task_tracker.task_store import RemoteError, TaskGateway

logger = logging.getLogger(__name__)

router = APIRouter()

StatusValue = Literal["pending", "in-progress", "completed"]


# =============================================================================
# Pydantic Models
# =============================================================================

class TaskCreateRequest(BaseModel):
    """Request body for creating a task. Status always starts as pending."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = ""
    due_at: Optional[datetime] = Field(None, alias="dueAt")
    notifications_enabled: bool = Field(False, alias="notificationsEnabled")


class TaskUpdateRequest(BaseModel):
    """Request body for patching a task; only fields that are sent are applied."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[StatusValue] = None
    due_at: Optional[datetime] = Field(None, alias="dueAt")
    notifications_enabled: Optional[bool] = Field(None, alias="notificationsEnabled")


def _remote_failure(action: str, exc: RemoteError) -> HTTPException:
    logger.error(f"Task {action} failed: {exc}")
    return HTTPException(status_code=502, detail=f"Task store error: {exc}")


# =============================================================================
# Endpoints
# =============================================================================

@router.get("")
def list_tasks(
    status: Literal["all", "pending", "in-progress", "completed"] = Query("all"),
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> dict:
    """List the caller's tasks, newest first."""
    try:
        tasks = gateway.list(user.user_id)
    except RemoteError as exc:
        raise _remote_failure("list", exc) from exc
    filtered = filter_tasks(tasks, status)
    return {
        "tasks": [serialize_task(task) for task in filtered],
        "filter": status,
        "total": len(tasks),
    }


@router.get("/stats")
def task_stats(
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> dict:
    """Per-status counts and deadline summary for the caller's tasks."""
    try:
        tasks = gateway.list(user.user_id)
    except RemoteError as exc:
        raise _remote_failure("stats", exc) from exc
    return summarize_tasks(tasks).to_api_dict()


@router.get("/{task_id}")
def get_task(
    task_id: str,
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> dict:
    try:
        task = gateway.get(task_id, user.user_id)
    except RemoteError as exc:
        raise _remote_failure("read", exc) from exc
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found.")
    return serialize_task(task)


@router.post("", status_code=201)
def create_task(
    request: TaskCreateRequest,
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> dict:
    try:
        task = gateway.insert(request.model_dump(), user.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RemoteError as exc:
        raise _remote_failure("create", exc) from exc
    logger.info(f"Task {task.id} created for {user.email}")
    return serialize_task(task)


@router.patch("/{task_id}")
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> dict:
    patch = request.model_dump(exclude_unset=True)
    try:
        gateway.update(task_id, patch, user.user_id)
        task = gateway.get(task_id, user.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RemoteError as exc:
        raise _remote_failure("update", exc) from exc
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found.")
    return serialize_task(task)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    user: Identity = Depends(get_current_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> Response:
    try:
        gateway.remove(task_id, user.user_id)
    except RemoteError as exc:
        raise _remote_failure("delete", exc) from exc
    return Response(status_code=204)
