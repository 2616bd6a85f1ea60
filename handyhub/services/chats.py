"""Chat resolution: one canonical chat per (task, participant set).

The unique index on ``(task_id, pair_key)`` is the only race arbiter. A
request that loses a concurrent first-access race rolls back and returns the
winner's chat instead of failing.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from handyhub.db_models import Chat, ChatParticipant, Message, Task
from handyhub.errors import InternalError, NotFoundError, ValidationError
from handyhub.ids import chat_id as make_chat_id
from handyhub.services.messages import chat_participant_ids, message_to_dict
from handyhub.utils import iso, status_str, utcnow

logger = logging.getLogger("handyhub.chats")


def pair_key(participant_ids: list[str]) -> str:
    return ":".join(sorted(participant_ids))


def desired_participants(task: Task, user_id: str) -> list[str]:
    """Creator, assignee (if any) and caller, deduplicated.

    With three distinct people (a third user opening the chat of an assigned
    task) the assignee is dropped and the chat is between the creator and
    the caller.
    """
    ids = list(dict.fromkeys(p for p in (task.created_by, task.assigned_to, user_id) if p))
    if len(ids) > 2:
        logger.warning(
            "Task %s: %s is neither creator nor assignee; chatting with the creator only",
            task.id,
            user_id,
        )
        ids = [task.created_by, user_id]
    return ids


def chat_to_dict(chat: Chat, participants: list[str]) -> dict:
    return {
        "id": chat.id,
        "task": chat.task_id,
        "participants": participants,
        "isActive": chat.is_active,
        "createdAt": iso(chat.created_at),
        "updatedAt": iso(chat.updated_at),
    }


async def _find_by_pair(session: AsyncSession, tid: str, key: str) -> Chat | None:
    result = await session.execute(select(Chat).where(Chat.task_id == tid, Chat.pair_key == key))
    return result.scalar_one_or_none()


async def _find_containing(session: AsyncSession, tid: str, user_id: str) -> Chat | None:
    """Most recently active chat of the task that ``user_id`` already takes part in."""
    result = await session.execute(
        select(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .where(Chat.task_id == tid, ChatParticipant.user_id == user_id)
        .order_by(Chat.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _upgrade_solo_chat(
    session: AsyncSession, chat: Chat, desired: list[str], key: str
) -> Chat | None:
    """Append the missing participant to a one-person chat.

    Returns None when another request changed the chat first or already
    created the pair chat; the caller re-reads in that case.
    """
    solo_id = chat.pair_key
    try:
        result = await session.execute(
            update(Chat)
            .where(Chat.id == chat.id, Chat.pair_key == solo_id)
            .values(pair_key=key, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await session.rollback()
            return None
        for pid in desired:
            if pid != solo_id:
                session.add(ChatParticipant(chat_id=chat.id, user_id=pid))
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return None
    await session.refresh(chat)
    logger.info("Chat %s of task %s now has participants %s", chat.id, chat.task_id, key)
    return chat


async def _create_or_fetch(
    session: AsyncSession, tid: str, desired: list[str], key: str
) -> Chat:
    chat = Chat(id=make_chat_id(), task_id=tid, pair_key=key)
    session.add(chat)
    for pid in desired:
        session.add(ChatParticipant(chat_id=chat.id, user_id=pid))
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        winner = await _find_by_pair(session, tid, key)
        if winner is None:
            raise InternalError("Chat creation conflicted but no chat was found") from None
        logger.debug("Chat for task %s created concurrently; using %s", tid, winner.id)
        return winner
    logger.info("Created chat %s for task %s", chat.id, tid)
    return chat


async def resolve_chat(session: AsyncSession, tid: str, user_id: str) -> tuple[Chat, list[str]]:
    """Find or create the caller's chat for a task. Returns (chat, participant ids)."""
    task = await session.get(Task, tid)
    if not task:
        raise NotFoundError("Task not found")

    desired = desired_participants(task, user_id)
    if not desired:
        raise ValidationError("Cannot create chat without participants")
    key = pair_key(desired)

    chat = await _find_by_pair(session, tid, key)
    if chat:
        return chat, await chat_participant_ids(session, chat.id)

    # Once the task has an assignee, the creator's one-person chat (opened
    # while the task was still posted) becomes the creator/assignee chat.
    if len(desired) == 2 and task.assigned_to in desired:
        for pid in desired:
            solo = await _find_by_pair(session, tid, pid)
            if solo is None:
                continue
            upgraded = await _upgrade_solo_chat(session, solo, desired, key)
            if upgraded is None:
                upgraded = await _find_by_pair(session, tid, key)
            if upgraded is not None:
                return upgraded, await chat_participant_ids(session, upgraded.id)

    # The caller already talks about this task in some other chat: stay there
    # rather than splitting the conversation.
    chat = await _find_containing(session, tid, user_id)
    if chat:
        return chat, await chat_participant_ids(session, chat.id)

    chat = await _create_or_fetch(session, tid, desired, key)
    return chat, await chat_participant_ids(session, chat.id)


async def get_task_chat(session: AsyncSession, tid: str, user_id: str) -> dict | None:
    """The caller's chat for a task, without creating one."""
    task = await session.get(Task, tid)
    if not task:
        raise NotFoundError("Task not found")

    chat = await _find_by_pair(session, tid, pair_key(desired_participants(task, user_id)))
    if chat is None:
        chat = await _find_containing(session, tid, user_id)
    if chat is None:
        return None
    return await _chat_summary(session, chat)


async def _chat_summary(session: AsyncSession, chat: Chat) -> dict:
    data = chat_to_dict(chat, await chat_participant_ids(session, chat.id))
    count = await session.execute(
        select(func.count()).select_from(Message).where(Message.chat_id == chat.id)
    )
    last = await session.execute(
        select(Message)
        .where(Message.chat_id == chat.id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    )
    last_message = last.scalar_one_or_none()
    data["messageCount"] = count.scalar_one()
    data["lastMessage"] = message_to_dict(last_message) if last_message else None
    return data


async def list_user_chats(session: AsyncSession, user_id: str) -> list[dict]:
    """Active chats the user takes part in, most recently active first."""
    result = await session.execute(
        select(Chat, Task.title, Task.status)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .join(Task, Task.id == Chat.task_id)
        .where(ChatParticipant.user_id == user_id, Chat.is_active.is_(True))
        .order_by(Chat.updated_at.desc())
    )
    chats = []
    for chat, title, status in result.all():
        data = await _chat_summary(session, chat)
        data["task"] = {"id": chat.task_id, "title": title, "status": status_str(status)}
        chats.append(data)
    return chats
