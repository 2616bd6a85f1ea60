"""Initial schema: users, tasks, chats, messages, notifications, feedback.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

_task_status = sa.Enum(
    "posted", "accepted", "in_progress", "completed", "cancelled", name="taskstatus"
)
_task_priority = sa.Enum("low", "medium", "high", name="taskpriority")
_user_role = sa.Enum("requester", "fulfiller", name="userrole")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("name", sa.VARCHAR(), nullable=False),
        sa.Column("email", sa.VARCHAR(), nullable=True),
        sa.Column("phone", sa.VARCHAR(), nullable=True),
        sa.Column("role", _user_role, nullable=False, server_default="requester"),
        sa.Column("key_hash", sa.VARCHAR(), nullable=False),
        sa.Column("key_fingerprint", sa.VARCHAR(), nullable=False),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_key_fingerprint", "users", ["key_fingerprint"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("title", sa.VARCHAR(), nullable=False),
        sa.Column("description", sa.VARCHAR(), nullable=False),
        sa.Column("min_budget", sa.FLOAT(), nullable=False),
        sa.Column("max_budget", sa.FLOAT(), nullable=False),
        sa.Column("date", sa.DATETIME(), nullable=False),
        sa.Column("category", sa.VARCHAR(), nullable=False),
        sa.Column("priority", _task_priority, nullable=False, server_default="medium"),
        sa.Column("status", _task_status, nullable=False, server_default="posted"),
        sa.Column("created_by", sa.VARCHAR(), nullable=False),
        sa.Column("assigned_to", sa.VARCHAR(), nullable=True),
        sa.Column("location_address", sa.VARCHAR(), nullable=True),
        sa.Column("location_lng", sa.FLOAT(), nullable=True),
        sa.Column("location_lat", sa.FLOAT(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_to"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_created_by", "tasks", ["created_by"])
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"])
    op.create_index("ix_tasks_created_at", "tasks", ["created_at"])
    op.create_index("ix_tasks_status_created_at", "tasks", ["status", "created_at"])

    op.create_table(
        "chats",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("pair_key", sa.VARCHAR(), nullable=False),
        sa.Column("is_active", sa.BOOLEAN(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.Column("updated_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chats_task_id", "chats", ["task_id"])
    op.create_index("ix_chats_task_pair", "chats", ["task_id", "pair_key"], unique=True)

    op.create_table(
        "chat_participants",
        sa.Column("id", sa.INTEGER(), nullable=False),
        sa.Column("chat_id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chat_participants_chat_id", "chat_participants", ["chat_id"])
    op.create_index("ix_chat_participants_user_id", "chat_participants", ["user_id"])
    op.create_index(
        "ix_chat_participants_pair", "chat_participants", ["chat_id", "user_id"], unique=True
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("chat_id", sa.VARCHAR(), nullable=False),
        sa.Column("sender_id", sa.VARCHAR(), nullable=False),
        sa.Column("content", sa.VARCHAR(), nullable=False),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_chat_id", "messages", ["chat_id"])
    op.create_index("ix_messages_chat_created_at", "messages", ["chat_id", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("message", sa.VARCHAR(), nullable=False),
        sa.Column("read", sa.BOOLEAN(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "task_feedback",
        sa.Column("id", sa.VARCHAR(), nullable=False),
        sa.Column("task_id", sa.VARCHAR(), nullable=False),
        sa.Column("author_id", sa.VARCHAR(), nullable=False),
        sa.Column("rating", sa.INTEGER(), nullable=False),
        sa.Column("comment", sa.VARCHAR(), nullable=True),
        sa.Column("created_at", sa.DATETIME(), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"]),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_task_feedback_task_author", "task_feedback", ["task_id", "author_id"], unique=True
    )


def downgrade() -> None:
    op.drop_table("task_feedback")
    op.drop_table("notifications")
    op.drop_table("messages")
    op.drop_table("chat_participants")
    op.drop_table("chats")
    op.drop_table("tasks")
    op.drop_table("users")
