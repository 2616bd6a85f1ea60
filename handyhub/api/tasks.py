"""Task lifecycle routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from handyhub.auth import AuthUser
from handyhub.config import settings
from handyhub.database import get_db_session
from handyhub.db_models import User
from handyhub.errors import NotFoundError
from handyhub.models import CompleteRequest, ErrorResponse, StatusUpdateRequest, TaskCreateRequest
from handyhub.rate_limit import limiter
from handyhub.services.tasks import (
    accept_task,
    complete_with_feedback,
    create_task,
    delete_task,
    get_task,
    list_assigned_tasks,
    list_available_tasks,
    list_my_tasks,
    transition,
)

router = APIRouter()

_TRANSITION_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.post("/v1/tasks", status_code=201, responses={400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_create)
async def post_task(
    request: Request,
    body: TaskCreateRequest,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Post a new task. Budget may be flat (budgetMin/budgetMax) or nested
    (budget.min/max); location may be an address, a coordinate pair or GeoJSON."""
    task = await create_task(session, user.id, body)
    return {"success": True, "task": task}


@router.get("/v1/tasks")
@limiter.limit(settings.rate_limit_read)
async def browse_tasks(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Posted tasks plus the ones assigned to you, newest first."""
    return {"tasks": await list_available_tasks(session, user.id)}


@router.get("/v1/tasks/mine")
@limiter.limit(settings.rate_limit_read)
async def my_tasks(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    return {"tasks": await list_my_tasks(session, user.id)}


@router.get("/v1/tasks/assigned")
@limiter.limit(settings.rate_limit_read)
async def assigned_tasks(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    return {"tasks": await list_assigned_tasks(session, user.id)}


@router.get("/v1/tasks/{task_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def read_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    task = await get_task(session, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return {"task": task}


@router.delete("/v1/tasks/{task_id}", responses=_TRANSITION_ERRORS)
@limiter.limit(settings.rate_limit_transition)
async def remove_task(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Delete one of your tasks together with its chats."""
    await delete_task(session, task_id, user.id)
    return {"success": True, "message": "Task deleted"}


@router.put("/v1/tasks/{task_id}/accept", responses=_TRANSITION_ERRORS)
@limiter.limit(settings.rate_limit_transition)
async def accept(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Take a posted task. Exactly one of several simultaneous accepts wins."""
    task = await accept_task(session, task_id, user.id)
    return {"success": True, "task": task, "message": "Task accepted successfully"}


@router.put("/v1/tasks/{task_id}/status", responses=_TRANSITION_ERRORS)
@limiter.limit(settings.rate_limit_transition)
async def update_status(
    request: Request,
    task_id: str,
    body: StatusUpdateRequest,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Move a task to accepted, in_progress, completed or cancelled."""
    task = await transition(session, task_id, body.status, user.id)
    return {"success": True, "task": task}


@router.post("/v1/tasks/{task_id}/complete", responses=_TRANSITION_ERRORS)
@limiter.limit(settings.rate_limit_transition)
async def complete(
    request: Request,
    task_id: str,
    body: CompleteRequest,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Complete an in-progress task and leave feedback on the requester."""
    result = await complete_with_feedback(
        session, task_id, user.id, rating=body.rating, comment=body.feedback
    )
    return {"success": True, "message": "Task completed and feedback submitted", **result}
