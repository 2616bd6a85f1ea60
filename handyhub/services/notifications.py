"""Durable notifications written as a side effect of task transitions.

Everything here runs after the transition has been committed. A failure is
logged and swallowed: it never reaches the caller and never undoes the
transition.
"""

from __future__ import annotations

import contextlib
import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from handyhub.db_models import Notification, Task, TaskStatus, User
from handyhub.errors import NotFoundError
from handyhub.events import broadcaster
from handyhub.ids import notification_id
from handyhub.services.senders import send_email, send_sms
from handyhub.utils import iso, status_str

logger = logging.getLogger("handyhub.notifications")


def notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "user": n.user_id,
        "message": n.message,
        "read": n.read,
        "createdAt": iso(n.created_at),
    }


async def create_notification(session: AsyncSession, user_id: str, text: str) -> dict | None:
    """Persist one notification and push it to the user's room."""
    n = Notification(id=notification_id(), user_id=user_id, message=text)
    try:
        session.add(n)
        await session.commit()
    except Exception:
        logger.exception("Could not store notification for %s", user_id)
        with contextlib.suppress(Exception):
            await session.rollback()
        return None

    data = notification_to_dict(n)
    broadcaster.notification_created(user_id, data)
    return data


def transition_notices(task: Task, actor: User) -> list[tuple[str, str]]:
    """(recipient, text) pairs for a transition that just happened."""
    status = status_str(task.status)
    if status == TaskStatus.accepted.value:
        return [
            (
                task.created_by,
                f'Your task "{task.title}" was accepted by {actor.name or "a service provider"}.',
            )
        ]
    if status == TaskStatus.completed.value:
        return [(task.created_by, f'Your task "{task.title}" was marked as completed.')]
    if status == TaskStatus.cancelled.value:
        if actor.id == task.created_by and task.assigned_to:
            return [(task.assigned_to, f'Task "{task.title}" was cancelled by the requester.')]
        if actor.id == task.assigned_to:
            return [
                (task.created_by, f'Your task "{task.title}" was cancelled by {actor.name}.')
            ]
    return []


async def notify_transition(session: AsyncSession, task: Task, actor: User) -> list[dict]:
    created: list[dict] = []
    try:
        for recipient_id, text in transition_notices(task, actor):
            data = await create_notification(session, recipient_id, text)
            if data:
                created.append(data)
            if status_str(task.status) == TaskStatus.accepted.value:
                await _send_side_channels(session, recipient_id, "Task Accepted", text)
    except Exception:
        logger.exception("Notifying transition of task %s failed", task.id)
    return created


async def _send_side_channels(
    session: AsyncSession, recipient_id: str, subject: str, text: str
) -> None:
    recipient = await session.get(User, recipient_id)
    if not recipient:
        return
    await send_email(recipient.email, subject, text)
    if recipient.phone:
        await send_sms(recipient.phone, text)


async def list_notifications(session: AsyncSession, user_id: str) -> list[dict]:
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
    )
    return [notification_to_dict(n) for n in result.scalars().all()]


async def mark_read(session: AsyncSession, nid: str, user_id: str) -> dict:
    n = await session.get(Notification, nid)
    # Someone else's notification reads as missing
    if not n or n.user_id != user_id:
        raise NotFoundError("Notification not found")
    n.read = True
    session.add(n)
    await session.commit()
    return notification_to_dict(n)


async def mark_all_read(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await session.commit()
    return result.rowcount
