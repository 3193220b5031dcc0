#!/usr/bin/env python3
"""Task Tracker CLI."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from task_tracker.analysis import summarize_tasks
from task_tracker.config import ConfigError, Settings, load_settings
from task_tracker.filters import TASK_FILTERS
from task_tracker.reminders import GmailReminderDispatcher, ReminderError
from task_tracker.session import TaskSession
from task_tracker.sync import Identity, NotAuthenticated, TaskSyncEngine
from task_tracker.task_store import RemoteError, Task, TaskStatus, build_gateway

STATUSES = tuple(status.value for status in TaskStatus)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-tracker",
        description="Manage your personal task list from the terminal.",
    )
    parser.add_argument(
        "--user",
        default=os.getenv("TT_USER_ID"),
        help="Owner id to act as (defaults to TT_USER_ID, then the email).",
    )
    parser.add_argument(
        "--email",
        default=os.getenv("TT_USER_EMAIL"),
        help="Email address used for reminders (defaults to TT_USER_EMAIL).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List your tasks.")
    list_parser.add_argument(
        "--status",
        choices=TASK_FILTERS,
        default="all",
        help="Only show tasks with this status.",
    )

    add_parser = subparsers.add_parser("add", help="Create a task.")
    add_parser.add_argument("title", help="Task title.")
    add_parser.add_argument("--description", default="", help="Optional details.")
    add_parser.add_argument("--due", help="Due timestamp in ISO format (e.g. 2026-10-18T09:00).")
    add_parser.add_argument(
        "--notify",
        action="store_true",
        help="Email a reminder before the task is due.",
    )

    update_parser = subparsers.add_parser("update", help="Change fields of a task.")
    update_parser.add_argument("task_id", help="Task id.")
    update_parser.add_argument("--title")
    update_parser.add_argument("--description")
    update_parser.add_argument("--status", choices=STATUSES)
    update_parser.add_argument("--due", help="New due timestamp in ISO format.")
    update_parser.add_argument(
        "--notify",
        dest="notify",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Turn due-soon reminders on or off.",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a task.")
    delete_parser.add_argument("task_id", help="Task id.")

    subparsers.add_parser("stats", help="Show task counts by status.")

    watch_parser = subparsers.add_parser(
        "watch",
        help="Keep the task list open, refreshing on changes and sending reminders.",
    )
    watch_parser.add_argument(
        "--status",
        choices=TASK_FILTERS,
        default="all",
        help="Only show tasks with this status.",
    )
    watch_parser.add_argument(
        "--no-reminders",
        action="store_true",
        help="Do not send due-soon reminder emails.",
    )

    subparsers.add_parser(
        "check-config",
        help="Validate configuration and show the active task store.",
    )

    return parser


def format_task_rows(tasks: Iterable[Task]) -> str:
    rows = []
    for task in tasks:
        due = f"due {task.due_at:%Y-%m-%d %H:%M}" if task.due_at else "no due date"
        bell = " [remind]" if task.notifications_enabled else ""
        rows.append(f"{task.id}  {task.status.value:<11}  {task.title} ({due}){bell}")
    return "\n".join(rows) if rows else "No tasks."


def _parse_due(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        due = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid due timestamp {value!r}") from exc
    if due.tzinfo is None:
        due = due.astimezone()
    return due.astimezone(timezone.utc)


def _identity(args: argparse.Namespace) -> Optional[Identity]:
    user_id = args.user or args.email
    if not user_id:
        return None
    return Identity(user_id=user_id, email=args.email or user_id)


async def _with_engine(settings: Settings, user: Optional[Identity], action) -> None:
    engine = TaskSyncEngine(build_gateway(settings))
    try:
        if user is not None:
            await engine.sign_in(user)
        await action(engine)
    finally:
        engine.sign_out()


def _cmd_list(settings: Settings, user: Optional[Identity], status: str) -> int:
    async def action(engine: TaskSyncEngine) -> None:
        engine.set_filter(status)
        print(format_task_rows(engine.filtered_tasks))
        print(f"\n{len(engine.filtered_tasks)} of {len(engine.tasks)} task(s) | filter: {engine.filter}")

    asyncio.run(_with_engine(settings, user, action))
    return 0


def _cmd_add(settings: Settings, user: Optional[Identity], args: argparse.Namespace) -> int:
    due_at = _parse_due(args.due)

    async def action(engine: TaskSyncEngine) -> None:
        await engine.create(
            args.title,
            args.description,
            due_at=due_at,
            notifications_enabled=args.notify,
        )
        print(f"Task created. You now have {len(engine.tasks)} task(s).")

    asyncio.run(_with_engine(settings, user, action))
    return 0


def _cmd_update(settings: Settings, user: Optional[Identity], args: argparse.Namespace) -> int:
    patch: Dict[str, Any] = {}
    if args.title is not None:
        patch["title"] = args.title
    if args.description is not None:
        patch["description"] = args.description
    if args.status is not None:
        patch["status"] = args.status
    if args.due is not None:
        patch["due_at"] = _parse_due(args.due)
    if args.notify is not None:
        patch["notifications_enabled"] = args.notify
    if not patch:
        print("Nothing to update.", file=sys.stderr)
        return 1

    async def action(engine: TaskSyncEngine) -> None:
        await engine.update(args.task_id, patch)
        print(f"Task {args.task_id} updated.")

    asyncio.run(_with_engine(settings, user, action))
    return 0


def _cmd_delete(settings: Settings, user: Optional[Identity], task_id: str) -> int:
    async def action(engine: TaskSyncEngine) -> None:
        await engine.delete(task_id)
        print(f"Task {task_id} deleted. {len(engine.tasks)} task(s) left.")

    asyncio.run(_with_engine(settings, user, action))
    return 0


def _cmd_stats(settings: Settings, user: Optional[Identity]) -> int:
    async def action(engine: TaskSyncEngine) -> None:
        stats = summarize_tasks(engine.tasks)
        print(f"Total tasks: {stats.total}")
        for status in TaskStatus:
            print(f"  {status.value:<11} {stats.by_status[status.value]}")
        print(f"Completion rate: {stats.completion_rate:.0%}")
        print(f"Overdue: {stats.overdue} | Due within a day: {stats.due_within_day}")

    asyncio.run(_with_engine(settings, user, action))
    return 0


def _cmd_watch(settings: Settings, user: Identity, status: str, reminders: bool) -> int:
    dispatcher = None
    if reminders:
        if settings.reminder_account:
            try:
                dispatcher = GmailReminderDispatcher.from_env(
                    settings.reminder_account, settings.reminder_lead_hours
                )
            except ReminderError as exc:
                print(f"Reminders disabled: {exc}", file=sys.stderr)
        else:
            print("Reminders disabled: TT_REMINDER_ACCOUNT is not set.", file=sys.stderr)

    async def run() -> None:
        session = TaskSession(build_gateway(settings), settings, dispatcher)

        def render(engine: TaskSyncEngine) -> None:
            if engine.user is None:
                return
            print(f"\n[{datetime.now():%H:%M:%S}] {engine.state.value}")
            print(format_task_rows(engine.filtered_tasks))

        session.engine.add_listener(render)
        session.engine.set_filter(status)
        await session.start(user)
        try:
            await asyncio.Event().wait()
        finally:
            await session.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("\nStopped watching.")
    return 0


def _cmd_check_config() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Config check failed: {exc}", file=sys.stderr)
        return 1

    print(
        "Configuration OK",
        f"environment={settings.environment}",
        f"store={settings.store_backend}",
        f"reminders={'on' if settings.reminder_account else 'off'}",
    )
    print(
        f"Reminder lead {settings.reminder_lead_hours:g}h, "
        f"window +/-{settings.reminder_window_hours:g}h, "
        f"scan every {settings.reminder_interval_seconds:g}s"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "check-config":
        return _cmd_check_config()

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    user = _identity(args)

    try:
        if args.command == "list":
            return _cmd_list(settings, user, args.status)
        if args.command == "add":
            return _cmd_add(settings, user, args)
        if args.command == "update":
            return _cmd_update(settings, user, args)
        if args.command == "delete":
            return _cmd_delete(settings, user, args.task_id)
        if args.command == "stats":
            return _cmd_stats(settings, user)
        if args.command == "watch":
            if user is None:
                raise NotAuthenticated("Pass --user/--email or set TT_USER_ID to watch tasks.")
            return _cmd_watch(settings, user, args.status, not args.no_reminders)
    except NotAuthenticated as exc:
        print(f"Not signed in: {exc}", file=sys.stderr)
        return 1
    except (RemoteError, ValueError, argparse.ArgumentTypeError) as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
