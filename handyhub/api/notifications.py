"""Notification inbox routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from handyhub.auth import AuthUser
from handyhub.config import settings
from handyhub.database import get_db_session
from handyhub.db_models import User
from handyhub.models import ErrorResponse
from handyhub.rate_limit import limiter
from handyhub.services.notifications import list_notifications, mark_all_read, mark_read

router = APIRouter()


@router.get("/v1/notifications")
@limiter.limit(settings.rate_limit_read)
async def inbox(request: Request, user: User = AuthUser, session=Depends(get_db_session)):
    """Your notifications, newest first."""
    return {"notifications": await list_notifications(session, user.id)}


@router.put("/v1/notifications/read-all")
async def read_all(user: User = AuthUser, session=Depends(get_db_session)):
    updated = await mark_all_read(session, user.id)
    return {"success": True, "updated": updated, "message": "All notifications marked as read"}


@router.put("/v1/notifications/{notification_id}/read", responses={404: {"model": ErrorResponse}})
async def read_one(notification_id: str, user: User = AuthUser, session=Depends(get_db_session)):
    return {"success": True, "notification": await mark_read(session, notification_id, user.id)}
