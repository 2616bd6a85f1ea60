"""User registration service."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from handyhub.auth import hash_key, key_fingerprint
from handyhub.db_models import User, UserRole
from handyhub.ids import api_key, user_id
from handyhub.utils import iso, status_str


async def register(
    session: AsyncSession,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    role: UserRole = UserRole.requester,
) -> dict:
    """Register a new user. Returns the user id and the raw API key."""
    uid = user_id()
    key = api_key()
    user = User(
        id=uid,
        name=name,
        email=email,
        phone=phone,
        role=role,
        key_hash=hash_key(key),
        key_fingerprint=key_fingerprint(key),
    )
    session.add(user)
    await session.commit()
    return {"userId": uid, "apiKey": key, "role": status_str(role)}


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": status_str(user.role),
        "createdAt": iso(user.created_at),
    }
