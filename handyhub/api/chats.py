"""Task chat routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from handyhub.auth import AuthUser
from handyhub.config import settings
from handyhub.database import get_db_session
from handyhub.db_models import Chat, User
from handyhub.errors import AuthorizationError, NotFoundError
from handyhub.models import ErrorResponse, MessageRequest
from handyhub.rate_limit import limiter
from handyhub.services.chats import get_task_chat, list_user_chats, resolve_chat
from handyhub.services.messages import append_message, chat_participant_ids, list_messages

router = APIRouter()

_CHAT_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.get("/v1/chats")
@limiter.limit(settings.rate_limit_read)
async def my_chats(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Your active conversations with their latest message."""
    return {"success": True, "chats": await list_user_chats(session, user.id)}


@router.get("/v1/chats/task/{task_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def task_chat(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Chat info for a task, or null when you have not opened it yet."""
    chat = await get_task_chat(session, task_id, user.id)
    if chat is None:
        return {"success": True, "chat": None, "message": "No chat found for this task"}
    return {"success": True, "chat": chat}


@router.get("/v1/chat/{task_id}/messages", responses=_CHAT_ERRORS)
@limiter.limit(settings.rate_limit_read)
async def get_task_messages(
    request: Request, task_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    """Open (creating if needed) your chat for a task and read its messages."""
    chat, participants = await resolve_chat(session, task_id, user.id)
    messages = await list_messages(session, chat.id)
    return {
        "success": True,
        "chatId": chat.id,
        "taskId": chat.task_id,
        "messages": messages,
        "participants": participants,
    }


@router.post("/v1/chat/{task_id}/messages", status_code=201, responses=_CHAT_ERRORS)
@limiter.limit(settings.rate_limit_message)
async def post_task_message(
    request: Request,
    task_id: str,
    body: MessageRequest,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Send a message in your chat for a task."""
    chat, _participants = await resolve_chat(session, task_id, user.id)
    message = await append_message(session, chat.id, user.id, body.content)
    return {"success": True, "message": message, "chatId": chat.id}


async def _participant_chat(session, chat_id: str, user_id: str) -> Chat:
    chat = await session.get(Chat, chat_id)
    if not chat:
        raise NotFoundError("Chat not found")
    if user_id not in await chat_participant_ids(session, chat_id):
        raise AuthorizationError("You are not a participant of this chat")
    return chat


@router.get("/v1/chats/{chat_id}/messages", responses=_CHAT_ERRORS)
@limiter.limit(settings.rate_limit_read)
async def get_chat_messages(
    request: Request, chat_id: str, user: User = AuthUser, session=Depends(get_db_session)
):
    chat = await _participant_chat(session, chat_id, user.id)
    return {
        "success": True,
        "chatId": chat.id,
        "taskId": chat.task_id,
        "messages": await list_messages(session, chat.id),
        "participants": await chat_participant_ids(session, chat.id),
    }


@router.post("/v1/chats/{chat_id}/messages", status_code=201, responses=_CHAT_ERRORS)
@limiter.limit(settings.rate_limit_message)
async def post_chat_message(
    request: Request,
    chat_id: str,
    body: MessageRequest,
    user: User = AuthUser,
    session=Depends(get_db_session),
):
    """Send a message to a chat by id. Only its participants may write."""
    message = await append_message(session, chat_id, user.id, body.content)
    return {"success": True, "message": message, "chatId": chat_id}
