"""Tests for the owner-scoped task gateway (file backend) and task model."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from task_tracker.task_store import FileTaskGateway, RemoteError, Task, TaskStatus
from task_tracker.task_store.models import apply_patch, prepare_patch


# =============================================================================
# Listing
# =============================================================================

def test_list_without_table_returns_empty(gateway, alice):
    assert gateway.list(alice.user_id) == []


def test_list_orders_newest_first(gateway, alice, store_dir):
    first = gateway.insert({"title": "First"}, alice.user_id)
    second = gateway.insert({"title": "Second"}, alice.user_id)

    # Force a deterministic gap between creation times.
    path = next(store_dir.glob("*_tasks.jsonl"))
    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    for row in rows:
        if row["id"] == first.id:
            row["created_at"] = "2026-01-01T00:00:00+00:00"
        else:
            row["created_at"] = "2026-02-01T00:00:00+00:00"
    path.write_text("".join(json.dumps(row) + "\n" for row in rows), encoding="utf-8")

    assert [t.id for t in gateway.list(alice.user_id)] == [second.id, first.id]


def test_list_skips_corrupt_lines(gateway, alice, store_dir):
    gateway.insert({"title": "Keep me"}, alice.user_id)
    path = next(store_dir.glob("*_tasks.jsonl"))
    with path.open("a", encoding="utf-8") as handle:
        handle.write("{not json\n")

    tasks = gateway.list(alice.user_id)
    assert [t.title for t in tasks] == ["Keep me"]


def test_unreadable_store_raises_remote_error(tmp_path, alice):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    gateway = FileTaskGateway(blocker)

    with pytest.raises(RemoteError) as excinfo:
        gateway.insert({"title": "Nowhere to go"}, alice.user_id)
    assert isinstance(excinfo.value.cause, OSError)


# =============================================================================
# Insert
# =============================================================================

def test_insert_forces_owner_and_pending_status(gateway, alice):
    task = gateway.insert(
        {"title": "Pay rent", "status": "completed", "owner": "someone-else"},
        alice.user_id,
    )

    assert task.owner == alice.user_id
    assert task.status == TaskStatus.PENDING
    assert task.id
    assert task.created_at.tzinfo is not None
    assert task.notification_sent is False

    stored = gateway.list(alice.user_id)
    assert len(stored) == 1
    assert stored[0].status == TaskStatus.PENDING
    assert stored[0].owner == alice.user_id


def test_insert_rejects_blank_title(gateway, alice):
    with pytest.raises(ValueError):
        gateway.insert({"title": "   "}, alice.user_id)
    assert gateway.list(alice.user_id) == []


def test_insert_keeps_due_date_and_reminder_flag(gateway, alice):
    due = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)
    task = gateway.insert(
        {"title": "Dentist", "due_at": due, "notifications_enabled": True},
        alice.user_id,
    )

    fetched = gateway.get(task.id, alice.user_id)
    assert fetched.due_at == due
    assert fetched.notifications_enabled is True


# =============================================================================
# Ownership scoping
# =============================================================================

def test_list_never_returns_other_owners_tasks(gateway, alice, bob):
    gateway.insert({"title": "Alice task"}, alice.user_id)
    gateway.insert({"title": "Bob task"}, bob.user_id)

    assert {t.owner for t in gateway.list(alice.user_id)} == {alice.user_id}
    assert {t.owner for t in gateway.list(bob.user_id)} == {bob.user_id}


def test_update_against_other_owner_matches_nothing(gateway, alice, bob):
    task = gateway.insert({"title": "Bob task"}, bob.user_id)

    gateway.update(task.id, {"title": "Hijacked"}, alice.user_id)

    assert gateway.get(task.id, bob.user_id).title == "Bob task"
    assert gateway.list(alice.user_id) == []


def test_remove_against_other_owner_matches_nothing(gateway, alice, bob):
    task = gateway.insert({"title": "Bob task"}, bob.user_id)

    gateway.remove(task.id, alice.user_id)

    assert [t.id for t in gateway.list(bob.user_id)] == [task.id]


def test_get_other_owner_returns_none(gateway, alice, bob):
    task = gateway.insert({"title": "Bob task"}, bob.user_id)
    assert gateway.get(task.id, alice.user_id) is None


# =============================================================================
# Update / remove
# =============================================================================

def test_update_applies_patch_and_touches_updated_at(gateway, alice):
    task = gateway.insert({"title": "Draft"}, alice.user_id)

    gateway.update(task.id, {"status": "in-progress", "description": "halfway"}, alice.user_id)

    updated = gateway.get(task.id, alice.user_id)
    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.description == "halfway"
    assert updated.created_at == task.created_at
    assert updated.updated_at >= task.updated_at


def test_update_rejects_immutable_fields(gateway, alice):
    task = gateway.insert({"title": "Draft"}, alice.user_id)

    with pytest.raises(ValueError):
        gateway.update(task.id, {"owner": "user-bob"}, alice.user_id)
    with pytest.raises(ValueError):
        gateway.update(task.id, {"status": "archived"}, alice.user_id)


def test_remove_deletes_task(gateway, alice):
    keep = gateway.insert({"title": "Keep"}, alice.user_id)
    drop = gateway.insert({"title": "Drop"}, alice.user_id)

    gateway.remove(drop.id, alice.user_id)

    assert [t.id for t in gateway.list(alice.user_id)] == [keep.id]


def test_moving_due_date_resets_notification_sent(gateway, alice):
    due = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)
    task = gateway.insert(
        {"title": "Renew passport", "due_at": due, "notifications_enabled": True},
        alice.user_id,
    )
    gateway.update(task.id, {"notification_sent": True}, alice.user_id)

    # Same due date (different offset): the flag must stay set.
    same_instant = due.astimezone(timezone(timedelta(hours=-4)))
    gateway.update(task.id, {"due_at": same_instant}, alice.user_id)
    assert gateway.get(task.id, alice.user_id).notification_sent is True

    gateway.update(task.id, {"due_at": due + timedelta(days=1)}, alice.user_id)
    assert gateway.get(task.id, alice.user_id).notification_sent is False


# =============================================================================
# Change feed
# =============================================================================

def test_change_feed_notifies_only_the_owner(gateway, alice, bob):
    alice_events = []
    bob_events = []
    gateway.subscribe_to_changes(alice.user_id, lambda: alice_events.append(1))
    gateway.subscribe_to_changes(bob.user_id, lambda: bob_events.append(1))

    task = gateway.insert({"title": "Alice task"}, alice.user_id)
    gateway.update(task.id, {"status": "completed"}, alice.user_id)
    gateway.remove(task.id, alice.user_id)

    assert len(alice_events) == 3
    assert bob_events == []


def test_unsubscribe_stops_notifications(gateway, alice):
    events = []
    unsubscribe = gateway.subscribe_to_changes(alice.user_id, lambda: events.append(1))
    gateway.insert({"title": "One"}, alice.user_id)
    unsubscribe()
    gateway.insert({"title": "Two"}, alice.user_id)

    assert len(events) == 1


def test_failing_listener_does_not_break_writes(gateway, alice):
    def boom():
        raise RuntimeError("listener bug")

    gateway.subscribe_to_changes(alice.user_id, boom)
    task = gateway.insert({"title": "Still saved"}, alice.user_id)

    assert gateway.get(task.id, alice.user_id) is not None


# =============================================================================
# Model helpers
# =============================================================================

def test_task_round_trips_through_storage_dict():
    task = Task(
        id="t1",
        title="Pay rent",
        owner="user-alice",
        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
        due_at=datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc),
        notifications_enabled=True,
    )
    assert Task.from_dict(task.to_dict()) == task


def test_api_dict_uses_camel_case():
    task = Task(
        id="t1",
        title="Pay rent",
        owner="user-alice",
        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )
    data = task.to_api_dict()
    assert data["createdAt"] == "2026-10-01T00:00:00+00:00"
    assert data["dueAt"] is None
    assert data["notificationsEnabled"] is False


def test_prepare_patch_rejects_unknown_fields():
    with pytest.raises(ValueError):
        prepare_patch({"priority": "high"})


def test_apply_patch_keeps_flag_when_explicitly_set():
    row = {"id": "t1", "due_at": "2026-10-18T08:00:00+00:00", "notification_sent": False}
    merged = apply_patch(
        row,
        {"due_at": "2026-10-19T08:00:00+00:00", "notification_sent": True},
        datetime(2026, 10, 17, tzinfo=timezone.utc),
    )
    assert merged["notification_sent"] is True
    assert merged["updated_at"] == "2026-10-17T00:00:00+00:00"


def test_sent_flag_cannot_be_cleared_for_the_same_due_date(gateway, alice):
    due = datetime(2026, 10, 18, 8, 0, tzinfo=timezone.utc)
    task = gateway.insert(
        {"title": "Pay rent", "due_at": due, "notifications_enabled": True},
        alice.user_id,
    )
    gateway.update(task.id, {"notification_sent": True}, alice.user_id)

    gateway.update(task.id, {"notification_sent": False}, alice.user_id)
    assert gateway.get(task.id, alice.user_id).notification_sent is True

    gateway.update(task.id, {"due_at": due, "notification_sent": False}, alice.user_id)
    assert gateway.get(task.id, alice.user_id).notification_sent is True


@pytest.mark.parametrize("field", ["notifications_enabled", "notification_sent"])
def test_prepare_patch_rejects_null_flags(field):
    with pytest.raises(ValueError, match=field):
        prepare_patch({field: None})
