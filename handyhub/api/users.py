"""Registration and identity routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from handyhub.auth import AuthUser
from handyhub.config import settings
from handyhub.database import get_db_session
from handyhub.db_models import User
from handyhub.models import ErrorResponse, RegisterRequest
from handyhub.rate_limit import limiter
from handyhub.services.users import register, user_to_dict

router = APIRouter()


@router.post("/v1/register", status_code=201, responses={400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_register)
async def register_user(request: Request, body: RegisterRequest, session=Depends(get_db_session)):
    """Create a user and return its API key. The key is shown only once."""
    return await register(session, body.name, email=body.email, phone=body.phone, role=body.role)


@router.get("/v1/me", responses={401: {"model": ErrorResponse}})
async def me(user: User = AuthUser):
    return user_to_dict(user)
