"""Task data model shared by the store backends, engine and API.

Storage format (one dict per task):
- snake_case keys
- datetimes as ISO-8601 strings with timezone offsets

The API format uses camelCase keys to match the web client.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class TaskStatus(str, Enum):
    """Closed set of task statuses."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


IMMUTABLE_FIELDS = frozenset({"id", "owner", "created_at"})
MUTABLE_FIELDS = frozenset({
    "title",
    "description",
    "status",
    "due_at",
    "notifications_enabled",
    "notification_sent",
})


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value else None


def parse_status(value: Any) -> TaskStatus:
    """Coerce a raw status value into TaskStatus.

    Raises:
        ValueError: if the value is outside the status domain.
    """
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value))
    except ValueError as exc:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise ValueError(f"Invalid status {value!r}; expected one of: {allowed}") from exc


def clean_title(value: Any) -> str:
    """Return a stripped title, rejecting empty ones."""
    title = str(value or "").strip()
    if not title:
        raise ValueError("Task title must not be empty.")
    return title


@dataclass(slots=True)
class Task:
    """A task owned by a single user."""

    id: str
    title: str
    owner: str
    created_at: datetime
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    due_at: Optional[datetime] = None
    notifications_enabled: bool = False
    notification_sent: bool = False
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "owner": self.owner,
            "created_at": self.created_at.isoformat(),
            "updated_at": _format_datetime(self.updated_at),
            "due_at": _format_datetime(self.due_at),
            "notifications_enabled": self.notifications_enabled,
            "notification_sent": self.notification_sent,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Create from a storage dictionary."""
        return cls(
            id=str(data["id"]),
            title=data["title"],
            owner=data["owner"],
            created_at=_parse_datetime(data.get("created_at")) or datetime.now(timezone.utc),
            description=data.get("description") or "",
            status=parse_status(data.get("status", TaskStatus.PENDING.value)),
            due_at=_parse_datetime(data.get("due_at")),
            notifications_enabled=bool(data.get("notifications_enabled", False)),
            notification_sent=bool(data.get("notification_sent", False)),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Convert to API response format (camelCase)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "owner": self.owner,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": _format_datetime(self.updated_at),
            "dueAt": _format_datetime(self.due_at),
            "notificationsEnabled": self.notifications_enabled,
            "notificationSent": self.notification_sent,
        }


def prepare_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate an update patch and convert it to storage format.

    Raises:
        ValueError: for immutable, unknown or malformed fields.
    """
    frozen = IMMUTABLE_FIELDS.intersection(patch)
    if frozen:
        raise ValueError(f"Cannot update immutable field(s): {', '.join(sorted(frozen))}")
    unknown = set(patch) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    updates: Dict[str, Any] = {}
    for key, value in patch.items():
        if key == "title":
            updates[key] = clean_title(value)
        elif key == "description":
            updates[key] = value or ""
        elif key == "status":
            updates[key] = parse_status(value).value
        elif key == "due_at":
            updates[key] = _format_datetime(_parse_datetime(value))
        elif value is None:
            raise ValueError(f"{key} must be true or false, not null.")
        else:
            updates[key] = bool(value)

    return updates


def build_new_task(
    task_id: str,
    fields: Mapping[str, Any],
    owner_id: str,
    now: datetime,
) -> Task:
    """Build a freshly created task.

    ``owner`` and ``status`` are always forced; caller-supplied values for
    them are ignored.
    """
    if not owner_id:
        raise ValueError("Task owner must not be empty.")
    return Task(
        id=task_id,
        title=clean_title(fields.get("title")),
        owner=owner_id,
        created_at=now,
        updated_at=now,
        description=fields.get("description") or "",
        status=TaskStatus.PENDING,
        due_at=_parse_datetime(fields.get("due_at")),
        notifications_enabled=bool(fields.get("notifications_enabled", False)),
        notification_sent=False,
    )


def apply_patch(row: Mapping[str, Any], updates: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """Merge prepared updates into a stored row.

    The sent flag is tracked per due date: it only goes back to false when
    ``due_at`` moves to a different value. Moving ``due_at`` without
    mentioning ``notification_sent`` clears it; clearing it while the due date
    stays put is ignored.
    """
    merged = dict(row)
    due_changed = "due_at" in updates and updates["due_at"] != row.get("due_at")
    merged.update(updates)
    if due_changed and "notification_sent" not in updates:
        merged["notification_sent"] = False
    elif not due_changed and row.get("notification_sent"):
        merged["notification_sent"] = True
    merged["updated_at"] = now.isoformat()
    return merged
