"""Tagging friends on goals.

Every tag is threaded through the direct conversation between the goal owner
and the tagged friend, so a conversation can list the goals pinned to it.
"""
from __future__ import annotations

from typing import Iterable

from loguru import logger
from sqlalchemy import func
from sqlmodel import select

from ..models import ConversationParticipant, Goal, GoalTag, get_session
from .errors import Forbidden
from .friendships import are_friends
from .goals import _owned, filter_visible, get_visible_goal, goal_dict, items_for
from .messaging import get_or_create_direct, require_participant
from .notifications import notify
from .profiles import get_profile


def tag_dict(tag: GoalTag) -> dict:
    return {
        "id": tag.id,
        "goal_id": tag.goal_id,
        "user_id": tag.user_id,
        "conversation_id": tag.conversation_id,
        "created_at": tag.created_at,
    }


def _tags(session, goal_id: str) -> list[GoalTag]:
    return list(session.exec(
        select(GoalTag).where(GoalTag.goal_id == goal_id).order_by(GoalTag.created_at)
    ))


def _add_tags(session, goal: Goal, user_ids: list[str], existing: set[str]) -> list[GoalTag]:
    owner = get_profile(goal.owner_id)
    todo = [uid for uid in user_ids if uid not in existing]
    # conversations commit in their own session, before anything is staged here
    conversations = {uid: get_or_create_direct(goal.owner_id, uid)["id"] for uid in todo}
    added = []
    for user_id in todo:
        tag = GoalTag(goal_id=goal.id, user_id=user_id, conversation_id=conversations[user_id])
        session.add(tag)
        notify(session, user_id, "goal_tag",
               title="You were tagged in a goal",
               body=f"{owner.full_name or owner.username} tagged you in \"{goal.title}\"",
               related_id=goal.id)
        added.append(tag)
    return added


def _clean(owner_id: str, user_ids: Iterable[str]) -> list[str]:
    cleaned = [uid for uid in dict.fromkeys(user_ids) if uid and uid != owner_id]
    for uid in cleaned:
        if not are_friends(owner_id, uid):
            raise Forbidden("You can only tag friends")
    return cleaned


def tag_users(user_id: str, goal_id: str, user_ids: Iterable[str]) -> list[dict]:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        wanted = _clean(goal.owner_id, user_ids)
        existing = {t.user_id for t in _tags(session, goal_id)}
        added = _add_tags(session, goal, wanted, existing)
        session.commit()
        if added:
            logger.info({"type": "goal_tagged", "goal_id": goal_id, "users": [t.user_id for t in added]})
        return [tag_dict(t) for t in _tags(session, goal_id)]


def sync_tags(user_id: str, goal_id: str, user_ids: Iterable[str]) -> list[dict]:
    """Make the goal's tag set exactly `user_ids`."""
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        wanted = _clean(goal.owner_id, user_ids)
        current = {t.user_id: t for t in _tags(session, goal_id)}
        _add_tags(session, goal, wanted, set(current))
        for uid, tag in current.items():
            if uid not in wanted:
                session.delete(tag)
        session.commit()
        return [tag_dict(t) for t in _tags(session, goal_id)]


def untag_user(user_id: str, goal_id: str, tagged_id: str) -> None:
    with get_session() as session:
        _owned(session, goal_id, user_id)
        for tag in session.exec(
            select(GoalTag).where(GoalTag.goal_id == goal_id).where(GoalTag.user_id == tagged_id)
        ):
            session.delete(tag)
        session.commit()


def list_tags(viewer_id: str, goal_id: str) -> list[dict]:
    get_visible_goal(goal_id, viewer_id)
    with get_session() as session:
        return [tag_dict(t) for t in _tags(session, goal_id)]


def tagged_goals(viewer_id: str, user_id: str) -> list[dict]:
    """Goals `user_id` is tagged on that the viewer may read."""
    with get_session() as session:
        ids = list(session.exec(select(GoalTag.goal_id).where(GoalTag.user_id == user_id)))
    goals = filter_visible(ids, viewer_id)
    items = items_for([g.id for g in goals])
    return [goal_dict(g, items[g.id]) for g in goals]


def tags_by_goal(goal_ids: Iterable[str]) -> dict[str, list[str]]:
    ids = list(dict.fromkeys(goal_ids))
    out: dict[str, list[str]] = {gid: [] for gid in ids}
    if not ids:
        return out
    with get_session() as session:
        rows = session.exec(
            select(GoalTag).where(GoalTag.goal_id.in_(ids)).order_by(GoalTag.created_at)  # type: ignore[attr-defined]
        ).all()
    for row in rows:
        out[row.goal_id].append(row.user_id)
    return out


def pinned_goals(viewer_id: str, conversation_id: str) -> list[dict]:
    with get_session() as session:
        require_participant(session, conversation_id, viewer_id)
        ids = list(session.exec(
            select(GoalTag.goal_id).where(GoalTag.conversation_id == conversation_id)
        ))
    goals = filter_visible(ids, viewer_id)
    items = items_for([g.id for g in goals])
    return [goal_dict(g, items[g.id]) for g in goals]


def goal_counts(viewer_id: str, conversation_ids: Iterable[str]) -> dict[str, int]:
    """Tagged goal counts per conversation; conversations the viewer is not in read as 0."""
    ids = list(dict.fromkeys(conversation_ids))
    counts = {cid: 0 for cid in ids}
    if not ids:
        return counts
    member_of = (
        select(ConversationParticipant.conversation_id)
        .where(ConversationParticipant.user_id == viewer_id)
    )
    with get_session() as session:
        rows = session.exec(
            select(GoalTag.conversation_id, func.count(func.distinct(GoalTag.goal_id)))
            .where(GoalTag.conversation_id.in_(ids))  # type: ignore[attr-defined]
            .where(GoalTag.conversation_id.in_(member_of))  # type: ignore[attr-defined]
            .group_by(GoalTag.conversation_id)
        ).all()
    for conversation_id, count in rows:
        counts[conversation_id] = count
    return counts
