"""Task synchronization engine.

Keeps the signed-in user's task list in memory and in step with the remote
store:
- fetch once on sign-in
- re-fetch after every local write
- re-fetch whenever the store's change feed fires

Every fetch replaces the whole list. Overlapping fetches are allowed and the
last one to resolve wins. Results that land after the session ended, or after
a different user signed in, are discarded.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from ..filters import ALL, filter_tasks, normalize_filter
from ..task_store.gateway import RemoteError, TaskGateway, Unsubscribe
from ..task_store.models import Task, TaskStatus

logger = logging.getLogger(__name__)

Listener = Callable[["TaskSyncEngine"], None]


class NotAuthenticated(RuntimeError):
    """Raised when a task mutation is attempted with no signed-in user."""


class EngineState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"
    MUTATING = "mutating"


@dataclass(slots=True, frozen=True)
class Identity:
    """The signed-in user as reported by the identity provider."""

    user_id: str
    email: str


class TaskSyncEngine:
    """Authoritative in-memory task list for the current user."""

    def __init__(self, gateway: TaskGateway) -> None:
        self._gateway = gateway
        self._user: Optional[Identity] = None
        self._tasks: List[Task] = []
        self._filter = ALL
        self._state = EngineState.UNAUTHENTICATED
        self._generation = 0
        self._mutations = 0
        self._unsubscribe: Optional[Unsubscribe] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []

    # -------------------------------------------------------------------------
    # Read-only view
    # -------------------------------------------------------------------------

    @property
    def user(self) -> Optional[Identity]:
        return self._user

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state == EngineState.LOADING

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def filter(self) -> str:
        return self._filter

    @property
    def filtered_tasks(self) -> List[Task]:
        return filter_tasks(self._tasks, self._filter)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every list replacement; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def sign_in(self, user: Identity) -> None:
        """Start a session for ``user``: subscribe to changes and load tasks."""
        if self._user is not None:
            self.sign_out()

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        self._user = user
        self._state = EngineState.LOADING
        self._unsubscribe = self._gateway.subscribe_to_changes(
            user.user_id, self._on_remote_change
        )
        logger.info(f"Signed in as {user.email}; loading tasks")
        try:
            await self.refresh()
        except Exception:
            logger.warning(f"Initial task load failed for {user.email}; signing out")
            self.sign_out()
            raise

    def sign_out(self) -> None:
        """End the session; in-flight results are dropped and the list cleared."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for pending in list(self._pending):
            pending.cancel()
        self._pending.clear()

        self._generation += 1
        self._user = None
        self._mutations = 0
        self._tasks = []
        self._state = EngineState.UNAUTHENTICATED
        self._emit()

    # -------------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------------

    def set_filter(self, selected: str | TaskStatus) -> None:
        self._filter = normalize_filter(selected)
        self._emit()

    async def refresh(self) -> None:
        """Re-fetch the full task list from the store."""
        await self._fetch(self._generation)

    async def create(
        self,
        title: str,
        description: str = "",
        due_at: Optional[datetime] = None,
        notifications_enabled: bool = False,
    ) -> None:
        """Create a task for the current user, then re-fetch.

        Raises:
            NotAuthenticated: when nobody is signed in.
            RemoteError: when the store rejects the write.
        """
        user = self._require_user("create")
        fields: Dict[str, Any] = {
            "title": title,
            "description": description,
            "due_at": due_at,
            "notifications_enabled": notifications_enabled,
        }
        await self._mutate(self._gateway.insert, fields, user.user_id)

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> None:
        """Patch one of the current user's tasks, then re-fetch.

        A task owned by someone else matches nothing and reads as success.
        """
        user = self._require_user("update")
        await self._mutate(self._gateway.update, task_id, dict(patch), user.user_id)

    async def delete(self, task_id: str) -> None:
        """Delete one of the current user's tasks, then re-fetch."""
        user = self._require_user("delete")
        await self._mutate(self._gateway.remove, task_id, user.user_id)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_user(self, action: str) -> Identity:
        if self._user is None:
            raise NotAuthenticated(f"You must be signed in to {action} tasks.")
        return self._user

    async def _mutate(self, operation: Callable[..., Any], *args: Any) -> None:
        generation = self._generation
        self._mutations += 1
        self._state = EngineState.MUTATING
        try:
            await asyncio.to_thread(operation, *args)
        finally:
            if generation == self._generation:
                self._mutations -= 1
                await self._refresh_after_write(generation)

    async def _refresh_after_write(self, generation: int) -> None:
        try:
            await self._fetch(generation)
        except RemoteError as exc:
            # The change feed schedules another fetch for the same write.
            logger.warning(f"Re-fetch after write failed: {exc}")
            self._settle()

    async def _fetch(self, generation: int) -> None:
        user = self._user
        if user is None:
            return
        tasks = await asyncio.to_thread(self._gateway.list, user.user_id)
        if generation != self._generation:
            logger.debug("Discarding task list fetched for an ended session")
            return
        self._tasks = tasks
        self._settle()
        self._emit()

    def _settle(self) -> None:
        if self._user is None:
            self._state = EngineState.UNAUTHENTICATED
        elif self._mutations > 0:
            self._state = EngineState.MUTATING
        else:
            self._state = EngineState.READY

    def _on_remote_change(self) -> None:
        # Firestore delivers snapshots on its own thread.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_refresh, self._generation)

    def _schedule_refresh(self, generation: int) -> None:
        if generation != self._generation or self._user is None:
            return
        pending = asyncio.ensure_future(self._refresh_quietly(generation))
        self._pending.add(pending)
        pending.add_done_callback(self._pending.discard)

    async def _refresh_quietly(self, generation: int) -> None:
        try:
            await self._fetch(generation)
        except RemoteError as exc:
            logger.warning(f"Re-fetch after remote change failed: {exc}")

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Task list listener failed")
