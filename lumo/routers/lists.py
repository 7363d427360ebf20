"""Task list routes."""

from __future__ import annotations

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lumo.dependencies import (
    ensure_same_owner,
    get_current_user_id,
    get_database_session,
    get_services,
)
from lumo.schemas.task import TaskResponse
from lumo.schemas.task_list import TaskListResponse
from lumo.services.registry import ServiceRegistry

router = APIRouter(prefix="/lists", tags=["lists"])

DatabaseSession = Annotated[AsyncSession, Depends(get_database_session)]
Services = Annotated[ServiceRegistry, Depends(get_services)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]


@router.post("", status_code=201, response_model=TaskListResponse)
async def create_list(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
    payload: Annotated[dict[str, Any] | None, Body()] = None,
) -> TaskListResponse:
    """Create a list owned by the caller."""
    ensure_same_owner((payload or {}).get("user"), user_id)
    task_list = await services.lists.create_list(db_session, user_id, payload)
    return TaskListResponse.from_record(task_list)


@router.get("", response_model=list[TaskListResponse])
async def list_lists(
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> list[TaskListResponse]:
    """Return the caller's lists."""
    lists = await services.lists.list_lists(db_session, user_id)
    return [TaskListResponse.from_record(task_list) for task_list in lists]


@router.get("/{owner_id}", response_model=list[TaskListResponse])
async def list_user_lists(
    owner_id: UUID,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> list[TaskListResponse]:
    """Return the lists of the named account, which must be the caller."""
    ensure_same_owner(owner_id, user_id)
    lists = await services.lists.list_lists(db_session, user_id)
    return [TaskListResponse.from_record(task_list) for task_list in lists]


@router.get("/{list_id}/tasks", response_model=list[TaskResponse])
async def list_tasks_in_list(
    list_id: UUID,
    db_session: DatabaseSession,
    services: Services,
    user_id: CurrentUserId,
) -> list[TaskResponse]:
    """Return the tasks in one of the caller's lists."""
    tasks = await services.tasks.list_tasks(db_session, user_id, list_id=list_id)
    return [TaskResponse.from_record(task) for task in tasks]
