"""Task routes."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.dependencies import (
    ensure_same_owner,
    get_current_user_id,
    get_database_session,
    get_services,
)
from lumo.schemas.common import MessageResponse
from lumo.schemas.task import TaskResponse
from lumo.services.registry import ServiceRegistry

router = APIRouter(prefix="/tasks", tags=["tasks"])

Payload = Annotated[dict[str, Any] | None, Body()]
DatabaseSession = Annotated[AsyncSession, Depends(get_database_session)]
Services = Annotated[ServiceRegistry, Depends(get_services)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


@router.post("", status_code=201, response_model=TaskResponse)
async def create_task(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
    payload: Payload = None,
) -> TaskResponse:
    """Create a task in one of the caller's lists."""
    ensure_same_owner((payload or {}).get("user"), user_id)
    task = await services.tasks.create_task(db_session, user_id, payload)
    return TaskResponse.from_record(task)


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
    list_id: Annotated[UUID | None, Query(alias="list")] = None,
    owner_id: Annotated[UUID | None, Query(alias="user")] = None,
) -> list[TaskResponse]:
    """Return the caller's tasks, optionally only one list's."""
    ensure_same_owner(owner_id, user_id)
    tasks = await services.tasks.list_tasks(db_session, user_id, list_id=list_id)
    return [TaskResponse.from_record(task) for task in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def read_task(
    task_id: UUID,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> TaskResponse:
    task = await services.tasks.get_task(db_session, user_id, task_id)
    return TaskResponse.from_record(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
    payload: Payload = None,
) -> TaskResponse:
    """Change some fields of one of the caller's tasks."""
    ensure_same_owner((payload or {}).get("user"), user_id)
    task = await services.tasks.update_task(db_session, user_id, task_id, payload)
    return TaskResponse.from_record(task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: UUID,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> MessageResponse:
    await services.tasks.delete_task(db_session, user_id, task_id)
    return MessageResponse(message="Task deleted.")
