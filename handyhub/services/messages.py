"""Append-only message log per chat."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from handyhub.config import settings
from handyhub.db_models import Chat, ChatParticipant, Message
from handyhub.errors import AuthorizationError, NotFoundError, ValidationError
from handyhub.events import broadcaster
from handyhub.ids import message_id
from handyhub.utils import as_utc, iso, utcnow

logger = logging.getLogger("handyhub.messages")

_TICK = timedelta(microseconds=1)
_last_issued: datetime | None = None


def next_timestamp(floor: datetime | None = None) -> datetime:
    """Server clock that never repeats or goes backwards in this process, and
    never lands at or before ``floor`` (the newest message already stored)."""
    global _last_issued
    ts = utcnow()
    if floor is not None:
        ts = max(ts, as_utc(floor) + _TICK)
    if _last_issued is not None:
        ts = max(ts, _last_issued + _TICK)
    _last_issued = ts
    return ts


def message_to_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "chatId": m.chat_id,
        "sender": m.sender_id,
        "content": m.content,
        "createdAt": iso(m.created_at),
    }


async def chat_participant_ids(session: AsyncSession, chat_id: str) -> list[str]:
    result = await session.execute(
        select(ChatParticipant.user_id)
        .where(ChatParticipant.chat_id == chat_id)
        .order_by(ChatParticipant.id)
    )
    return list(result.scalars().all())


def clean_content(content: str | None) -> str:
    text = content.strip() if isinstance(content, str) else ""
    if not text:
        raise ValidationError("Message content is required and cannot be empty")
    if len(text) > settings.max_message_length:
        raise ValidationError(
            f"Message content cannot exceed {settings.max_message_length} characters"
        )
    return text


async def append_message(
    session: AsyncSession, chat_id: str, sender_id: str, content: str | None
) -> dict:
    """Store a message and fan it out to the other participants' rooms."""
    chat = await session.get(Chat, chat_id)
    if not chat:
        raise NotFoundError("Chat not found")

    participants = await chat_participant_ids(session, chat_id)
    if sender_id not in participants:
        raise AuthorizationError("You are not authorized to send messages in this chat")

    text = clean_content(content)

    newest = await session.execute(
        select(func.max(Message.created_at)).where(Message.chat_id == chat_id)
    )
    created_at = next_timestamp(newest.scalar_one_or_none())

    msg = Message(
        id=message_id(),
        chat_id=chat_id,
        sender_id=sender_id,
        content=text,
        created_at=created_at,
    )
    session.add(msg)
    chat.updated_at = created_at
    session.add(chat)
    await session.commit()

    data = message_to_dict(msg)
    broadcaster.message_appended(chat.id, chat.task_id, data, participants, sender_id)
    return data


async def list_messages(session: AsyncSession, chat_id: str) -> list[dict]:
    """All messages of a chat, oldest first."""
    result = await session.execute(
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return [message_to_dict(m) for m in result.scalars().all()]


async def purge_chat(session: AsyncSession, chat_id: str) -> int:
    """Delete a chat's messages, participants and the chat row itself without
    committing, so callers can fold it into a larger transaction."""
    removed = await session.execute(delete(Message).where(Message.chat_id == chat_id))
    await session.execute(delete(ChatParticipant).where(ChatParticipant.chat_id == chat_id))
    await session.execute(delete(Chat).where(Chat.id == chat_id))
    return removed.rowcount


async def delete_chat(session: AsyncSession, chat_id: str) -> int:
    """Remove a chat with its participants and messages in one transaction.

    Returns the number of messages removed.
    """
    chat = await session.get(Chat, chat_id)
    if not chat:
        raise NotFoundError("Chat not found")
    removed = await purge_chat(session, chat_id)
    await session.commit()
    logger.info("Deleted chat %s with %d messages", chat_id, removed)
    return removed
