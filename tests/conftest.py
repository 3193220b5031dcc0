from __future__ import annotations

import pytest

from task_tracker.sync import Identity
from task_tracker.task_store import FileTaskGateway

from .fakes import FakeDispatcher


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "task_store"


@pytest.fixture
def gateway(store_dir) -> FileTaskGateway:
    return FileTaskGateway(store_dir)


@pytest.fixture
def alice() -> Identity:
    return Identity(user_id="user-alice", email="alice@example.com")


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="user-bob", email="bob@example.com")


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()
