"""GraphQL facade over the task gateway.

Queries: tasks, task(id)
Mutations: createTask, updateTask, deleteTask

Every field requires an authenticated caller; anonymous requests are
rejected by IsAuthenticated before a resolver runs.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import strawberry
from fastapi import Depends
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.permission import BasePermission
from strawberry.types import Info

from api.dependencies import get_gateway, get_optional_user
from task_tracker.sync import Identity
from task_tracker.task_store import Task, TaskGateway


class GraphQLContext(BaseContext):
    def __init__(self, user: Optional[Identity], gateway: TaskGateway) -> None:
        super().__init__()
        self.user = user
        self.gateway = gateway


def get_context(
    user: Optional[Identity] = Depends(get_optional_user),
    gateway: TaskGateway = Depends(get_gateway),
) -> GraphQLContext:
    return GraphQLContext(user, gateway)


class IsAuthenticated(BasePermission):
    message = "Authentication required"

    def has_permission(self, source: Any, info: Info, **kwargs: Any) -> bool:
        return info.context.user is not None


@strawberry.type(name="Task")
class TaskType:
    id: strawberry.ID
    title: str
    description: str
    status: str
    owner: str
    created_at: datetime
    updated_at: Optional[datetime]
    due_at: Optional[datetime]
    notifications_enabled: bool
    notification_sent: bool

    @classmethod
    def from_task(cls, task: Task) -> "TaskType":
        return cls(
            id=strawberry.ID(task.id),
            title=task.title,
            description=task.description,
            status=task.status.value,
            owner=task.owner,
            created_at=task.created_at,
            updated_at=task.updated_at,
            due_at=task.due_at,
            notifications_enabled=task.notifications_enabled,
            notification_sent=task.notification_sent,
        )


def _owner(info: Info) -> str:
    return info.context.user.user_id


@strawberry.type
class Query:
    @strawberry.field(permission_classes=[IsAuthenticated])
    async def tasks(self, info: Info) -> List[TaskType]:
        rows = await asyncio.to_thread(info.context.gateway.list, _owner(info))
        return [TaskType.from_task(task) for task in rows]

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def task(self, info: Info, id: strawberry.ID) -> Optional[TaskType]:
        row = await asyncio.to_thread(info.context.gateway.get, str(id), _owner(info))
        return TaskType.from_task(row) if row else None


@strawberry.type
class Mutation:
    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def create_task(
        self,
        info: Info,
        title: str,
        description: str = "",
        due_at: Optional[datetime] = None,
        notifications_enabled: bool = False,
    ) -> TaskType:
        fields = {
            "title": title,
            "description": description,
            "due_at": due_at,
            "notifications_enabled": notifications_enabled,
        }
        row = await asyncio.to_thread(info.context.gateway.insert, fields, _owner(info))
        return TaskType.from_task(row)

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def update_task(
        self,
        info: Info,
        id: strawberry.ID,
        title: Optional[str] = strawberry.UNSET,
        description: Optional[str] = strawberry.UNSET,
        status: Optional[str] = strawberry.UNSET,
        due_at: Optional[datetime] = strawberry.UNSET,
        notifications_enabled: Optional[bool] = strawberry.UNSET,
    ) -> Optional[TaskType]:
        candidates = {
            "title": title,
            "description": description,
            "status": status,
            "due_at": due_at,
            "notifications_enabled": notifications_enabled,
        }
        patch: Dict[str, Any] = {
            key: value for key, value in candidates.items() if value is not strawberry.UNSET
        }
        gateway = info.context.gateway
        await asyncio.to_thread(gateway.update, str(id), patch, _owner(info))
        row = await asyncio.to_thread(gateway.get, str(id), _owner(info))
        return TaskType.from_task(row) if row else None

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def delete_task(self, info: Info, id: strawberry.ID) -> bool:
        await asyncio.to_thread(info.context.gateway.remove, str(id), _owner(info))
        return True


schema = strawberry.Schema(query=Query, mutation=Mutation)

graphql_router = GraphQLRouter(schema, context_getter=get_context)
