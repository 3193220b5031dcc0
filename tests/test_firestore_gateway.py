"""Tests for the Firestore task backend using a mocked client."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from task_tracker.task_store import FirestoreTaskGateway, RemoteError, TaskStatus


def _doc(data, exists=True):
    doc = MagicMock()
    doc.exists = exists
    doc.to_dict.return_value = data
    return doc


def _row(task_id, owner="user-alice", created_at="2026-10-01T00:00:00+00:00", **extra):
    row = {
        "id": task_id,
        "title": f"Task {task_id}",
        "owner": owner,
        "status": "pending",
        "created_at": created_at,
    }
    row.update(extra)
    return row


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def tasks_ref(client):
    return client.collection.return_value.document.return_value.collection.return_value


@pytest.fixture
def gateway(client):
    return FirestoreTaskGateway(client, "users")


def test_list_reads_owner_subcollection(gateway, client, tasks_ref):
    query = tasks_ref.order_by.return_value
    query.stream.return_value = [
        _doc(_row("a", created_at="2026-10-01T00:00:00+00:00")),
        _doc(_row("b", created_at="2026-10-02T00:00:00+00:00")),
    ]

    tasks = gateway.list("user-alice")

    client.collection.assert_called_with("users")
    client.collection.return_value.document.assert_called_with("user-alice")
    tasks_ref.order_by.assert_called_with("created_at", direction="DESCENDING")
    assert [t.id for t in tasks] == ["b", "a"]
    assert tasks[0].status == TaskStatus.PENDING


def test_list_drops_rows_for_other_owners(gateway, tasks_ref):
    tasks_ref.order_by.return_value.stream.return_value = [
        _doc(_row("a")),
        _doc(_row("b", owner="user-bob")),
    ]
    assert [t.id for t in gateway.list("user-alice")] == ["a"]


def test_list_missing_collection_returns_empty(gateway, tasks_ref):
    tasks_ref.order_by.return_value.stream.side_effect = google_exceptions.NotFound("no such")
    assert gateway.list("user-alice") == []


def test_list_service_failure_raises_remote_error(gateway, tasks_ref):
    error = google_exceptions.ServiceUnavailable("down")
    tasks_ref.order_by.return_value.stream.side_effect = error

    with pytest.raises(RemoteError) as excinfo:
        gateway.list("user-alice")
    assert excinfo.value.cause is error


def test_insert_sets_document_by_id(gateway, tasks_ref):
    task = gateway.insert({"title": "Pay rent", "status": "completed"}, "user-alice")

    tasks_ref.document.assert_called_with(task.id)
    stored = tasks_ref.document.return_value.set.call_args.args[0]
    assert stored["owner"] == "user-alice"
    assert stored["status"] == "pending"


def test_update_missing_document_writes_nothing(gateway, tasks_ref):
    tasks_ref.document.return_value.get.return_value = _doc(None, exists=False)

    gateway.update("ghost", {"title": "Boo"}, "user-alice")

    tasks_ref.document.return_value.set.assert_not_called()


def test_update_merges_patch(gateway, tasks_ref):
    tasks_ref.document.return_value.get.return_value = _doc(_row("a"))

    gateway.update("a", {"status": "completed"}, "user-alice")

    stored = tasks_ref.document.return_value.set.call_args.args[0]
    assert stored["status"] == "completed"
    assert stored["title"] == "Task a"
    assert stored["updated_at"]


def test_remove_deletes_document(gateway, tasks_ref):
    tasks_ref.document.return_value.get.return_value = _doc(_row("a"))

    gateway.remove("a", "user-alice")

    tasks_ref.document.return_value.delete.assert_called_once()


def test_write_failure_raises_remote_error(gateway, tasks_ref):
    tasks_ref.document.return_value.set.side_effect = google_exceptions.PermissionDenied("nope")

    with pytest.raises(RemoteError):
        gateway.insert({"title": "Pay rent"}, "user-alice")


def test_subscribe_forwards_snapshots_and_unsubscribes(gateway, tasks_ref):
    events = []
    unsubscribe = gateway.subscribe_to_changes("user-alice", lambda: events.append(1))

    callback = tasks_ref.on_snapshot.call_args.args[0]
    callback([], [MagicMock()], None)
    assert events == [1]

    unsubscribe()
    tasks_ref.on_snapshot.return_value.unsubscribe.assert_called_once()
