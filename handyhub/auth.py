"""Authentication: bcrypt hashing with fingerprint-based DB lookup."""

from __future__ import annotations

import hashlib

import bcrypt
from fastapi import Depends, HTTPException, Request, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from handyhub.database import get_db_session
from handyhub.db_models import User


def hash_key(key: str) -> str:
    return bcrypt.hashpw(key.encode(), bcrypt.gensalt()).decode()


def verify_key(key: str, key_hash: str) -> bool:
    return bcrypt.checkpw(key.encode(), key_hash.encode())


def key_fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def user_for_key(session: AsyncSession, raw_key: str) -> User | None:
    fp = key_fingerprint(raw_key)
    result = await session.execute(select(User).where(User.key_fingerprint == fp))
    user = result.scalar_one_or_none()
    if not user or not verify_key(raw_key, user.key_hash):
        return None
    return user


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
) -> User:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")

    user = await user_for_key(session, auth[7:])
    if not user:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return user


AuthUser = Depends(get_current_user)


async def get_live_user_id(
    websocket: WebSocket,
    session: AsyncSession = Depends(get_db_session),
) -> str | None:
    """Resolve the caller of a live connection; browsers can't set headers, so
    the key may also arrive as the ``token`` query parameter."""
    auth = websocket.headers.get("Authorization", "")
    raw_key = auth[7:] if auth.startswith("Bearer ") else websocket.query_params.get("token")
    if not raw_key:
        return None
    user = await user_for_key(session, raw_key)
    # The socket may stay open for hours; don't keep the connection checked out.
    await session.rollback()
    return user.id if user else None
