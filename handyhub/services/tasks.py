"""Task lifecycle service: the task state machine.

Every status change goes through :func:`transition`. A change is applied as
one conditional UPDATE whose WHERE clause restates the precondition, so the
database arbitrates races between requests (and between server instances);
a zero rowcount means someone else got there first and surfaces as a
ConflictError. Nothing here retries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from handyhub.config import settings
from handyhub.db_models import TERMINAL_STATUSES, Chat, Task, TaskFeedback, TaskStatus, User
from handyhub.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from handyhub.events import broadcaster
from handyhub.ids import feedback_id
from handyhub.ids import task_id as make_task_id
from handyhub.models import AddressLocation, ResolvedLocation, TaskCreateRequest
from handyhub.services import geocode
from handyhub.services.messages import purge_chat
from handyhub.services.notifications import notify_transition
from handyhub.utils import iso, status_str, utcnow

logger = logging.getLogger("handyhub.tasks")

# Runs inside the transition's transaction, after the conditional update won.
StageHook = Callable[[AsyncSession, Task], Awaitable[None]]


@dataclass(frozen=True)
class TransitionRule:
    target: TaskStatus
    sources: frozenset[TaskStatus]


RULES: dict[TaskStatus, TransitionRule] = {
    TaskStatus.accepted: TransitionRule(TaskStatus.accepted, frozenset({TaskStatus.posted})),
    TaskStatus.in_progress: TransitionRule(
        TaskStatus.in_progress, frozenset({TaskStatus.accepted})
    ),
    TaskStatus.completed: TransitionRule(
        TaskStatus.completed, frozenset({TaskStatus.in_progress})
    ),
    TaskStatus.cancelled: TransitionRule(
        TaskStatus.cancelled,
        frozenset({TaskStatus.posted, TaskStatus.accepted, TaskStatus.in_progress}),
    ),
}


def task_to_dict(task: Task) -> dict:
    location = None
    if task.location_address or task.location_lng is not None:
        location = {
            "type": "Point",
            "coordinates": (
                [task.location_lng, task.location_lat] if task.location_lng is not None else None
            ),
            "address": task.location_address,
        }
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "minBudget": task.min_budget,
        "maxBudget": task.max_budget,
        "date": iso(task.date),
        "category": task.category,
        "priority": status_str(task.priority),
        "status": status_str(task.status),
        "createdBy": task.created_by,
        "assignedTo": task.assigned_to,
        "location": location,
        "createdAt": iso(task.created_at),
        "updatedAt": iso(task.updated_at),
    }


# ---------------------------------------------------------------------------
# Creation & reads
# ---------------------------------------------------------------------------


async def _resolve_location(
    location: ResolvedLocation | AddressLocation | None,
) -> tuple[str | None, float | None, float | None]:
    if location is None:
        return None, None, None
    if isinstance(location, ResolvedLocation):
        return location.address, location.lng, location.lat
    if not settings.geocoding_enabled:
        return location.address, None, None
    coords = await geocode.geocode_address(location.address)
    if not coords:
        raise ValidationError("Invalid address")
    return location.address, coords[0], coords[1]


async def create_task(session: AsyncSession, creator_id: str, draft: TaskCreateRequest) -> dict:
    address, lng, lat = await _resolve_location(draft.location)
    task = Task(
        id=make_task_id(),
        title=draft.title,
        description=draft.description,
        min_budget=draft.min_budget,
        max_budget=draft.max_budget,
        date=draft.date,
        category=draft.category,
        priority=draft.priority,
        created_by=creator_id,
        location_address=address,
        location_lng=lng,
        location_lat=lat,
    )
    session.add(task)
    await session.commit()
    logger.info("Task %s posted by %s", task.id, creator_id)
    return task_to_dict(task)


async def get_task(session: AsyncSession, tid: str) -> dict | None:
    task = await session.get(Task, tid)
    if not task:
        return None
    return task_to_dict(task)


async def list_available_tasks(session: AsyncSession, user_id: str) -> list[dict]:
    """Posted tasks anyone may accept, plus the ones assigned to the caller."""
    result = await session.execute(
        select(Task)
        .where(or_(Task.status == TaskStatus.posted, Task.assigned_to == user_id))
        .order_by(Task.created_at.desc())
    )
    return [task_to_dict(t) for t in result.scalars().all()]


async def list_my_tasks(session: AsyncSession, user_id: str) -> list[dict]:
    result = await session.execute(
        select(Task).where(Task.created_by == user_id).order_by(Task.created_at.desc())
    )
    return [task_to_dict(t) for t in result.scalars().all()]


async def list_assigned_tasks(session: AsyncSession, user_id: str) -> list[dict]:
    result = await session.execute(
        select(Task).where(Task.assigned_to == user_id).order_by(Task.created_at.desc())
    )
    return [task_to_dict(t) for t in result.scalars().all()]


async def delete_task(session: AsyncSession, tid: str, actor_id: str) -> int:
    """Delete a task with its chats, their messages and its feedback.

    Only the creator may delete. Everything goes in one commit; returns the
    number of chats removed.
    """
    task = await session.get(Task, tid)
    if not task:
        raise NotFoundError("Task not found")
    if task.created_by != actor_id:
        raise AuthorizationError("Not authorized to delete this task")

    chat_ids = (await session.execute(select(Chat.id).where(Chat.task_id == tid))).scalars().all()
    for cid in chat_ids:
        await purge_chat(session, cid)
    await session.execute(delete(TaskFeedback).where(TaskFeedback.task_id == tid))
    await session.delete(task)
    await session.commit()
    logger.info("Task %s deleted by %s with %d chats", tid, actor_id, len(chat_ids))
    return len(chat_ids)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _parse_target(target: TaskStatus | str) -> TransitionRule:
    try:
        status = TaskStatus(target)
    except ValueError:
        raise ValidationError("Invalid status update") from None
    rule = RULES.get(status)
    if rule is None:
        raise ValidationError("Invalid status update")
    return rule


def _check_actor(rule: TransitionRule, task: Task, actor_id: str) -> None:
    target = rule.target
    if target == TaskStatus.accepted:
        if task.created_by == actor_id:
            raise ConflictError("You cannot accept your own task")
    elif target == TaskStatus.in_progress:
        if task.assigned_to != actor_id:
            raise AuthorizationError("Only the assigned service provider can start this task")
    elif target == TaskStatus.completed:
        if task.assigned_to != actor_id:
            raise AuthorizationError("Only the assigned service provider can complete this task")
    elif target == TaskStatus.cancelled:
        if actor_id not in (task.created_by, task.assigned_to):
            raise AuthorizationError("Not authorized to cancel this task")


def _check_precondition(rule: TransitionRule, task: Task) -> None:
    status = TaskStatus(status_str(task.status))
    if rule.target == TaskStatus.accepted:
        if status != TaskStatus.posted or task.assigned_to:
            raise ConflictError("Task is not available for acceptance")
    elif status in TERMINAL_STATUSES and rule.target == TaskStatus.cancelled:
        raise ConflictError(f"Task is already {status.value}")
    elif status not in rule.sources:
        raise ConflictError(f"Task is {status.value}, cannot move to {rule.target.value}")


def _conditional_update(rule: TransitionRule, tid: str, actor_id: str):
    stmt = update(Task).where(Task.id == tid, Task.status.in_(list(rule.sources)))
    values: dict = {"status": rule.target, "updated_at": utcnow()}
    if rule.target == TaskStatus.accepted:
        stmt = stmt.where(Task.assigned_to.is_(None), Task.created_by != actor_id)
        values["assigned_to"] = actor_id
    elif rule.target in (TaskStatus.in_progress, TaskStatus.completed):
        stmt = stmt.where(Task.assigned_to == actor_id)
    elif rule.target == TaskStatus.cancelled:
        stmt = stmt.where(or_(Task.created_by == actor_id, Task.assigned_to == actor_id))
    return stmt.values(**values).execution_options(synchronize_session=False)


async def transition(
    session: AsyncSession,
    tid: str,
    target: TaskStatus | str,
    actor_id: str,
    *,
    stage: StageHook | None = None,
) -> dict:
    """Move task ``tid`` to ``target`` on behalf of ``actor_id``.

    Rejections (bad target, wrong actor, stale precondition, lost race) raise
    before anything is committed. On success the change is committed first;
    live events and notifications follow as best-effort side effects.
    """
    rule = _parse_target(target)
    task = await session.get(Task, tid)
    if not task:
        raise NotFoundError("Task not found")

    _check_actor(rule, task, actor_id)
    _check_precondition(rule, task)

    result = await session.execute(_conditional_update(rule, tid, actor_id))
    if result.rowcount == 0:
        await session.rollback()
        logger.info("Lost race moving task %s to %s (actor %s)", tid, rule.target.value, actor_id)
        if rule.target == TaskStatus.accepted:
            raise ConflictError("Task is not available for acceptance")
        raise ConflictError("Task changed concurrently; fetch it again")

    await session.refresh(task)
    if stage is not None:
        await stage(session, task)
    await session.commit()
    logger.info("Task %s -> %s by %s", tid, rule.target.value, actor_id)

    data = task_to_dict(task)
    broadcaster.task_updated(data)

    actor = await session.get(User, actor_id)
    if actor:
        await notify_transition(session, task, actor)
    return data


async def accept_task(session: AsyncSession, tid: str, actor_id: str) -> dict:
    return await transition(session, tid, TaskStatus.accepted, actor_id)


async def complete_with_feedback(
    session: AsyncSession,
    tid: str,
    actor_id: str,
    rating: int,
    comment: str | None = None,
) -> dict:
    """Complete an in-progress task and record the fulfiller's feedback in the
    same transaction. Enforcement is the plain ``completed`` transition."""
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    existing = await session.execute(
        select(TaskFeedback).where(TaskFeedback.task_id == tid, TaskFeedback.author_id == actor_id)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("Feedback has already been submitted for this task")

    feedback = TaskFeedback(
        id=feedback_id(),
        task_id=tid,
        author_id=actor_id,
        rating=rating,
        comment=comment.strip() if comment else None,
    )

    async def _store_feedback(session: AsyncSession, task: Task) -> None:
        session.add(feedback)

    task = await transition(session, tid, TaskStatus.completed, actor_id, stage=_store_feedback)
    return {
        "task": task,
        "feedback": {
            "id": feedback.id,
            "task": tid,
            "author": actor_id,
            "rating": feedback.rating,
            "comment": feedback.comment,
            "createdAt": iso(feedback.created_at),
        },
    }
