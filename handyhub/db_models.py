"""SQLModel table definitions for HandyHub."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from handyhub.utils import utcnow


class TaskStatus(str, enum.Enum):
    posted = "posted"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset({TaskStatus.completed, TaskStatus.cancelled})
ASSIGNED_STATUSES = frozenset({TaskStatus.accepted, TaskStatus.in_progress, TaskStatus.completed})


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class UserRole(str, enum.Enum):
    requester = "requester"
    fulfiller = "fulfiller"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str
    email: str | None = None
    phone: str | None = None
    role: UserRole = Field(default=UserRole.requester)
    key_hash: str
    key_fingerprint: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_status_created_at", "status", "created_at"),
    )

    id: str = Field(primary_key=True)
    title: str
    description: str
    min_budget: float
    max_budget: float
    date: datetime
    category: str
    priority: TaskPriority = Field(default=TaskPriority.medium)
    status: TaskStatus = Field(default=TaskStatus.posted, index=True)
    created_by: str = Field(foreign_key="users.id", index=True)
    assigned_to: str | None = Field(default=None, foreign_key="users.id", index=True)
    location_address: str | None = None
    location_lng: float | None = None
    location_lat: float | None = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class Chat(SQLModel, table=True):
    __tablename__ = "chats"
    __table_args__ = (Index("ix_chats_task_pair", "task_id", "pair_key", unique=True),)

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    pair_key: str  # sorted participant ids joined with ":"
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatParticipant(SQLModel, table=True):
    __tablename__ = "chat_participants"
    __table_args__ = (Index("ix_chat_participants_pair", "chat_id", "user_id", unique=True),)

    id: int | None = Field(default=None, primary_key=True)
    chat_id: str = Field(foreign_key="chats.id", ondelete="CASCADE", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)


class Message(SQLModel, table=True):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_chat_created_at", "chat_id", "created_at"),)

    id: str = Field(primary_key=True)
    chat_id: str = Field(foreign_key="chats.id", ondelete="CASCADE", index=True)
    sender_id: str = Field(foreign_key="users.id")
    content: str
    created_at: datetime = Field(default_factory=utcnow)


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id")
    message: str
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class TaskFeedback(SQLModel, table=True):
    __tablename__ = "task_feedback"
    __table_args__ = (Index("ix_task_feedback_task_author", "task_id", "author_id", unique=True),)

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id")
    author_id: str = Field(foreign_key="users.id")
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
