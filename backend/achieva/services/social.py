"""Likes and comments on goals."""
from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import func
from sqlmodel import select

from ..models import Goal, GoalComment, GoalLike, get_session, utcnow
from .errors import Forbidden, InvalidInput, NotFound
from .goals import get_visible_goal
from .profiles import get_profiles, profile_dict


def comment_dict(c: GoalComment, author=None) -> dict:
    data = {
        "id": c.id,
        "goal_id": c.goal_id,
        "user_id": c.user_id,
        "content": c.content,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }
    data["user_profile"] = profile_dict(author) if author is not None else None
    return data


# ---------------------------------------------------------------- likes

def like(user_id: str, goal_id: str) -> dict:
    get_visible_goal(goal_id, user_id)
    with get_session() as session:
        existing = session.exec(
            select(GoalLike).where(GoalLike.goal_id == goal_id).where(GoalLike.user_id == user_id)
        ).first()
        if existing is None:
            session.add(GoalLike(goal_id=goal_id, user_id=user_id))
            session.commit()
    return like_summary(user_id, goal_id)


def unlike(user_id: str, goal_id: str) -> dict:
    get_visible_goal(goal_id, user_id)
    with get_session() as session:
        for row in session.exec(
            select(GoalLike).where(GoalLike.goal_id == goal_id).where(GoalLike.user_id == user_id)
        ):
            session.delete(row)
        session.commit()
    return like_summary(user_id, goal_id)


def like_summary(user_id: str, goal_id: str) -> dict:
    return likes_by_goal(user_id, [goal_id])[goal_id]


def likes_by_goal(user_id: str, goal_ids: Iterable[str]) -> dict[str, dict]:
    ids = list(dict.fromkeys(goal_ids))
    out = {gid: {"count": 0, "is_liked": False} for gid in ids}
    if not ids:
        return out
    with get_session() as session:
        counts = session.exec(
            select(GoalLike.goal_id, func.count())
            .where(GoalLike.goal_id.in_(ids))  # type: ignore[attr-defined]
            .group_by(GoalLike.goal_id)
        ).all()
        mine = session.exec(
            select(GoalLike.goal_id)
            .where(GoalLike.goal_id.in_(ids))  # type: ignore[attr-defined]
            .where(GoalLike.user_id == user_id)
        ).all()
    for goal_id, count in counts:
        out[goal_id]["count"] = count
    for goal_id in mine:
        out[goal_id]["is_liked"] = True
    return out


# ---------------------------------------------------------------- comments

def _comments(goal_id: str) -> list[GoalComment]:
    with get_session() as session:
        return list(session.exec(
            select(GoalComment).where(GoalComment.goal_id == goal_id).order_by(GoalComment.created_at)
        ))


def _with_authors(rows: list[GoalComment]) -> list[dict]:
    authors = get_profiles(c.user_id for c in rows)
    return [comment_dict(c, authors.get(c.user_id)) for c in rows]


def list_comments(viewer_id: str, goal_id: str) -> list[dict]:
    get_visible_goal(goal_id, viewer_id)
    return _with_authors(_comments(goal_id))


def add_comment(user_id: str, goal_id: str, content: str) -> dict:
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Comment cannot be empty")
    get_visible_goal(goal_id, user_id)
    with get_session() as session:
        row = GoalComment(goal_id=goal_id, user_id=user_id, content=content)
        session.add(row)
        session.commit()
    logger.info({"type": "comment_added", "goal_id": goal_id, "comment_id": row.id})
    return _with_authors([row])[0]


def update_comment(user_id: str, comment_id: str, content: str) -> dict:
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Comment cannot be empty")
    with get_session() as session:
        row = session.get(GoalComment, comment_id)
        if not row:
            raise NotFound("Comment not found")
        if row.user_id != user_id:
            raise Forbidden("Only the author can edit a comment")
        row.content = content
        row.updated_at = utcnow()
        session.add(row)
        session.commit()
    return _with_authors([row])[0]


def delete_comment(user_id: str, comment_id: str) -> None:
    """The author or the goal owner may remove a comment."""
    with get_session() as session:
        row = session.get(GoalComment, comment_id)
        if not row:
            raise NotFound("Comment not found")
        if row.user_id != user_id:
            goal: Optional[Goal] = session.get(Goal, row.goal_id)
            if goal is None or goal.owner_id != user_id:
                raise Forbidden("Not allowed to delete this comment")
        session.delete(row)
        session.commit()


def comment_counts(goal_ids: Iterable[str]) -> dict[str, int]:
    ids = list(dict.fromkeys(goal_ids))
    out = {gid: 0 for gid in ids}
    if not ids:
        return out
    with get_session() as session:
        rows = session.exec(
            select(GoalComment.goal_id, func.count())
            .where(GoalComment.goal_id.in_(ids))  # type: ignore[attr-defined]
            .group_by(GoalComment.goal_id)
        ).all()
    for goal_id, count in rows:
        out[goal_id] = count
    return out


def comment_diff(goal_id: str, known: set[str]) -> Optional[dict]:
    """Compare stored comments against the ids a client already has.

    Returns None when nothing changed.
    """
    rows = _comments(goal_id)
    current = {c.id for c in rows}
    if current == known:
        return None
    return {
        "added": sorted(current - known),
        "removed": sorted(known - current),
        "comments": _with_authors(rows),
    }
