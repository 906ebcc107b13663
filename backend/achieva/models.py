"""Database models and session setup.

Provides a lightweight abstraction using SQLModel so tests can run against
SQLite by default while production can point to Postgres via DATABASE_URL.

Environment:
  DATABASE_URL (default: sqlite:///./storage/achieva.db)
  ECHO_SQL (optional) set to '1' to echo statements

Identifiers are UUID4 strings and timestamps are UTC ISO-8601 strings with
fixed microsecond precision, so ordering by the string column is
chronological.
"""
from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from typing import Optional
from pathlib import Path
from sqlmodel import SQLModel, Field, create_engine, Session  # type: ignore[import-untyped]
from sqlalchemy import UniqueConstraint

from .settings import settings

STORAGE_DIR = Path(settings.STORAGE_PATH)
STORAGE_DIR.mkdir(parents=True, exist_ok=True)

ECHO = os.getenv("ECHO_SQL", "0") == "1"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_id() -> str:
    return str(uuid.uuid4())


def create_engine_from_env(url: str | None = None):
    """Create a SQLModel/SQLAlchemy engine from settings.

    Passing a url overrides settings resolution (useful for tests).
    """
    resolved = url or settings.DATABASE_URL
    connect_args = {"check_same_thread": False} if resolved.startswith("sqlite") else {}
    return create_engine(resolved, echo=ECHO, connect_args=connect_args)


engine = create_engine_from_env()


class User(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    created_at: str = Field(default_factory=utcnow)


class Profile(SQLModel, table=True):  # type: ignore[misc]
    """Public face of a user; shares the user's id."""
    id: str = Field(primary_key=True, foreign_key="user.id")
    username: str = Field(index=True, unique=True)
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = "2000-01-01"
    avatar_url: Optional[str] = None
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Friendship(SQLModel, table=True):  # type: ignore[misc]
    """user_id_1 is the requester, user_id_2 the recipient."""
    id: str = Field(default_factory=new_id, primary_key=True)
    user_id_1: str = Field(foreign_key="user.id", index=True)
    user_id_2: str = Field(foreign_key="user.id", index=True)
    status: str = Field(default="pending", index=True)  # pending|accepted|blocked
    established_at: Optional[str] = None
    created_at: str = Field(default_factory=utcnow)


class Goal(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    owner_id: str = Field(foreign_key="user.id", index=True)
    title: str
    body: Optional[str] = None
    status: str = Field(default="active")  # active|completed|archived
    visibility: str = Field(default="public")  # public|friends|custom|private
    cover_image_url: Optional[str] = None
    is_draft: bool = Field(default=False, index=True)
    created_at: str = Field(default_factory=utcnow, index=True)
    updated_at: str = Field(default_factory=utcnow)


class GoalItem(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    goal_id: str = Field(foreign_key="goal.id", index=True)
    title: str
    completed: bool = False
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)


class GoalACL(SQLModel, table=True):  # type: ignore[misc]
    __table_args__ = (UniqueConstraint("goal_id", "user_id"),)
    id: str = Field(default_factory=new_id, primary_key=True)
    goal_id: str = Field(foreign_key="goal.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    role: str = Field(default="viewer")  # viewer|editor
    created_at: str = Field(default_factory=utcnow)


class Conversation(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    type: str = Field(default="direct", index=True)  # direct|group
    name: Optional[str] = None
    created_by: str = Field(foreign_key="user.id")
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)
    last_message_at: Optional[str] = Field(default=None, index=True)


class ConversationParticipant(SQLModel, table=True):  # type: ignore[misc]
    __table_args__ = (UniqueConstraint("conversation_id", "user_id"),)
    id: str = Field(default_factory=new_id, primary_key=True)
    conversation_id: str = Field(foreign_key="conversation.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    joined_at: str = Field(default_factory=utcnow)
    last_read_at: Optional[str] = None


class Message(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    conversation_id: str = Field(foreign_key="conversation.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    text: Optional[str] = None
    message_type: str = Field(default="text")
    media_url: Optional[str] = None
    created_at: str = Field(default_factory=utcnow, index=True)
    updated_at: str = Field(default_factory=utcnow)
    deleted_at: Optional[str] = None


class GoalTag(SQLModel, table=True):  # type: ignore[misc]
    __table_args__ = (UniqueConstraint("goal_id", "user_id"),)
    id: str = Field(default_factory=new_id, primary_key=True)
    goal_id: str = Field(foreign_key="goal.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    conversation_id: Optional[str] = Field(default=None, foreign_key="conversation.id", index=True)
    created_at: str = Field(default_factory=utcnow)


class GoalLike(SQLModel, table=True):  # type: ignore[misc]
    __table_args__ = (UniqueConstraint("goal_id", "user_id"),)
    id: str = Field(default_factory=new_id, primary_key=True)
    goal_id: str = Field(foreign_key="goal.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    created_at: str = Field(default_factory=utcnow)


class GoalComment(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    goal_id: str = Field(foreign_key="goal.id", index=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    content: str
    created_at: str = Field(default_factory=utcnow, index=True)
    updated_at: str = Field(default_factory=utcnow)


class Notification(SQLModel, table=True):  # type: ignore[misc]
    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    type: str  # message|goal_tag|friend_request
    title: str
    body: Optional[str] = None
    related_id: Optional[str] = None
    read_at: Optional[str] = Field(default=None, index=True)
    created_at: str = Field(default_factory=utcnow, index=True)


def create_db():  # idempotent
    SQLModel.metadata.create_all(engine)


def reset_db():
    """Drop and recreate every table. Used by the test suite."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine, expire_on_commit=False)


__all__ = [
    'User', 'Profile', 'Friendship', 'Goal', 'GoalItem', 'GoalACL', 'Conversation',
    'ConversationParticipant', 'Message', 'GoalTag', 'GoalLike', 'GoalComment', 'Notification',
    'create_engine_from_env', 'create_db', 'reset_db', 'get_session', 'engine', 'utcnow', 'new_id',
]
