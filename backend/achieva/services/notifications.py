"""In-app notification records (message, goal_tag, friend_request)."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlmodel import select

from ..models import Friendship, Notification, get_session, utcnow
from .errors import NotFound

NOTIFICATION_TYPES = ("message", "goal_tag", "friend_request")


def notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "related_id": n.related_id,
        "read_at": n.read_at,
        "is_read": n.read_at is not None,
        "created_at": n.created_at,
    }


def notify(session, user_id: str, type_: str, title: str, body: Optional[str] = None,
           related_id: Optional[str] = None) -> Notification:
    """Stage a notification on an open session; the caller commits."""
    if type_ not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type {type_!r}")
    row = Notification(user_id=user_id, type=type_, title=title, body=body, related_id=related_id)
    session.add(row)
    return row


def list_notifications(user_id: str, limit: int = 50, offset: int = 0) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())  # type: ignore[attr-defined]
        .offset(offset)
        .limit(limit)
    )
    with get_session() as session:
        return list(session.exec(stmt))


def mark_read(user_id: str, notification_id: str) -> Notification:
    with get_session() as session:
        row = session.get(Notification, notification_id)
        if not row or row.user_id != user_id:
            raise NotFound("Notification not found")
        if row.read_at is None:
            row.read_at = utcnow()
            session.add(row)
            session.commit()
        return row


def mark_all_read(user_id: str) -> int:
    now = utcnow()
    with get_session() as session:
        rows = session.exec(
            select(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read_at == None)  # noqa: E711
        ).all()
        for row in rows:
            row.read_at = now
            session.add(row)
        session.commit()
        return len(rows)


def unread_counts(user_id: str) -> dict:
    with get_session() as session:
        unread = session.exec(
            select(func.count()).select_from(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read_at == None)  # noqa: E711
            # pending requests are counted from the friendship table
            .where(Notification.type != "friend_request")
        ).one()
        pending = session.exec(
            select(func.count()).select_from(Friendship)
            .where(Friendship.user_id_2 == user_id)
            .where(Friendship.status == "pending")
        ).one()
    return {"notifications": unread, "friend_requests": pending, "total": unread + pending}
