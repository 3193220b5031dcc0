"""Owner-scoped gateway to the remote task table.

Every read and write is scoped by owner id. A write aimed at another
owner's task matches zero rows and is silently ignored, which is the
access-control rule the rest of the system relies on.

Backends:
- Firestore: users/{owner_id}/tasks/{task_id}, change feed via on_snapshot
- File: <store_dir>/{owner}_tasks.jsonl, change feed kept in-process

Failure policy:
- a missing table (collection, file or directory) reads as zero tasks
- everything else is raised as RemoteError and never retried here
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from google.api_core import exceptions as google_exceptions

from ..config import Settings
from ..firestore import get_firestore_client
from .models import Task, apply_patch, build_new_task, prepare_patch

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


class RemoteError(RuntimeError):
    """Raised when the remote store rejects or fails an operation."""

    def __init__(self, cause: BaseException | str) -> None:
        super().__init__(str(cause))
        self.cause = cause


class TableNotFound(RemoteError):
    """Raised by backends when the task table does not exist yet."""


class TaskGateway(ABC):
    """Read/write/subscribe operations against the remote task table."""

    def list(self, owner_id: str) -> List[Task]:
        """Return the owner's tasks, newest first.

        A table that does not exist yet reads as an empty list.
        """
        try:
            rows = self._list_rows(owner_id)
        except TableNotFound:
            logger.info(f"Task table not provisioned yet for {owner_id}; returning no tasks")
            return []

        tasks: List[Task] = []
        for row in rows:
            if row.get("owner") != owner_id:
                continue
            try:
                tasks.append(Task.from_dict(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed task row {row.get('id')!r}: {exc}")
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    def get(self, task_id: str, owner_id: str) -> Optional[Task]:
        """Return a single task if it exists and belongs to the owner."""
        row = self._get_row(task_id, owner_id)
        if row is None or row.get("owner") != owner_id:
            return None
        return Task.from_dict(row)

    def insert(self, fields: Mapping[str, Any], owner_id: str) -> Task:
        """Persist a new task.

        ``owner`` and ``status`` are forced to the caller's id and pending,
        whatever ``fields`` says.

        Returns:
            The stored task with its assigned id and timestamps.
        """
        task = build_new_task(str(uuid.uuid4()), fields, owner_id, datetime.now(timezone.utc))
        self._write_row(owner_id, task.to_dict())
        logger.debug(f"Inserted task {task.id} for {owner_id}")
        return task

    def update(self, task_id: str, patch: Mapping[str, Any], owner_id: str) -> None:
        """Apply a patch to the owner's task; other owners' tasks are untouched."""
        updates = prepare_patch(patch)
        row = self._get_row(task_id, owner_id)
        if row is None or row.get("owner") != owner_id:
            logger.debug(f"Update matched no task {task_id} for {owner_id}")
            return
        self._write_row(owner_id, apply_patch(row, updates, datetime.now(timezone.utc)))

    def remove(self, task_id: str, owner_id: str) -> None:
        """Delete the owner's task; other owners' tasks are untouched."""
        row = self._get_row(task_id, owner_id)
        if row is None or row.get("owner") != owner_id:
            logger.debug(f"Delete matched no task {task_id} for {owner_id}")
            return
        self._delete_row(task_id, owner_id)

    @abstractmethod
    def subscribe_to_changes(self, owner_id: str, on_change: ChangeCallback) -> Unsubscribe:
        """Call ``on_change`` whenever any of the owner's tasks change.

        Delivery is at-least-once and carries no payload; consumers re-fetch.
        The callback may be invoked from a background thread.
        """

    @abstractmethod
    def _list_rows(self, owner_id: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def _get_row(self, task_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _write_row(self, owner_id: str, row: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _delete_row(self, task_id: str, owner_id: str) -> None:
        ...


# =============================================================================
# Firestore Storage
# =============================================================================

@contextmanager
def _firestore_errors() -> Iterator[None]:
    try:
        yield
    except google_exceptions.NotFound as exc:
        raise TableNotFound(exc) from exc
    except google_exceptions.GoogleAPIError as exc:
        raise RemoteError(exc) from exc


class FirestoreTaskGateway(TaskGateway):
    """Tasks stored as Firestore documents under each user."""

    def __init__(self, client, collection: str = "users") -> None:
        self._db = client
        self._collection = collection

    def _tasks(self, owner_id: str):
        return self._db.collection(self._collection).document(owner_id).collection("tasks")

    def _list_rows(self, owner_id: str) -> List[Dict[str, Any]]:
        query = self._tasks(owner_id).order_by("created_at", direction="DESCENDING")
        with _firestore_errors():
            return [doc.to_dict() for doc in query.stream()]

    def _get_row(self, task_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        with _firestore_errors():
            doc = self._tasks(owner_id).document(task_id).get()
        if doc.exists:
            return doc.to_dict()
        return None

    def _write_row(self, owner_id: str, row: Dict[str, Any]) -> None:
        with _firestore_errors():
            self._tasks(owner_id).document(row["id"]).set(row)

    def _delete_row(self, task_id: str, owner_id: str) -> None:
        with _firestore_errors():
            self._tasks(owner_id).document(task_id).delete()

    def subscribe_to_changes(self, owner_id: str, on_change: ChangeCallback) -> Unsubscribe:
        def _on_snapshot(docs, changes, read_time) -> None:
            logger.debug(f"Firestore change for {owner_id}: {len(changes)} change(s)")
            on_change()

        with _firestore_errors():
            watch = self._tasks(owner_id).on_snapshot(_on_snapshot)
        return watch.unsubscribe


# =============================================================================
# File Storage (Fallback)
# =============================================================================

class ChangeFeed:
    """In-process change notifications keyed by owner."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[ChangeCallback]] = {}

    def subscribe(self, owner_id: str, on_change: ChangeCallback) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(owner_id, []).append(on_change)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(owner_id, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return _unsubscribe

    def publish(self, owner_id: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(owner_id, []))
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception(f"Change listener failed for {owner_id}")


class FileTaskGateway(TaskGateway):
    """Tasks stored as one JSONL file per owner."""

    def __init__(self, directory: Path | str, feed: Optional[ChangeFeed] = None) -> None:
        self._dir = Path(directory)
        self._feed = feed or ChangeFeed()
        self._lock = threading.Lock()

    def _user_file(self, owner_id: str) -> Path:
        # Sanitize owner id for filename
        safe_id = owner_id.replace("@", "_at_").replace(".", "_").replace("/", "_")
        return self._dir / f"{safe_id}_tasks.jsonl"

    def _read_rows(self, owner_id: str) -> Dict[str, Dict[str, Any]]:
        path = self._user_file(owner_id)
        if not path.exists():
            raise TableNotFound(f"No task file at {path}")

        rows: Dict[str, Dict[str, Any]] = {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                        rows[data["id"]] = data
                    except (json.JSONDecodeError, KeyError, TypeError):
                        logger.warning(f"Skipping unreadable line in {path.name}")
        except OSError as exc:
            raise RemoteError(exc) from exc
        return rows

    def _write_rows(self, owner_id: str, rows: Dict[str, Dict[str, Any]]) -> None:
        path = self._user_file(owner_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                for row in rows.values():
                    handle.write(json.dumps(row) + "\n")
        except OSError as exc:
            raise RemoteError(exc) from exc

    def _list_rows(self, owner_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._read_rows(owner_id).values())

    def _get_row(self, task_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            try:
                return self._read_rows(owner_id).get(task_id)
            except TableNotFound:
                return None

    def _write_row(self, owner_id: str, row: Dict[str, Any]) -> None:
        with self._lock:
            try:
                rows = self._read_rows(owner_id)
            except TableNotFound:
                rows = {}
            rows[row["id"]] = row
            self._write_rows(owner_id, rows)
        self._feed.publish(owner_id)

    def _delete_row(self, task_id: str, owner_id: str) -> None:
        with self._lock:
            rows = self._read_rows(owner_id)
            rows.pop(task_id, None)
            self._write_rows(owner_id, rows)
        self._feed.publish(owner_id)

    def subscribe_to_changes(self, owner_id: str, on_change: ChangeCallback) -> Unsubscribe:
        return self._feed.subscribe(owner_id, on_change)


def build_gateway(settings: Settings) -> TaskGateway:
    """Select the task backend for the given settings.

    Firestore is preferred; when its client cannot be created the file
    backend is used instead.
    """
    if settings.store_backend == "file":
        return FileTaskGateway(settings.store_dir)

    try:
        client = get_firestore_client(settings.firestore_project)
    except Exception as exc:
        logger.warning(f"Firestore unavailable, using file store at {settings.store_dir}: {exc}")
        return FileTaskGateway(settings.store_dir)
    return FirestoreTaskGateway(client, settings.firestore_collection)
