"""Mount all API routes."""

from fastapi import APIRouter

from handyhub.api.chats import router as chats_router
from handyhub.api.live import router as live_router
from handyhub.api.notifications import router as notifications_router
from handyhub.api.tasks import router as tasks_router
from handyhub.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(users_router, tags=["users"])
api_router.include_router(tasks_router, tags=["tasks"])
api_router.include_router(chats_router, tags=["chat"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(live_router, tags=["live"])
