"""Goals, checklist items, ACL and status bookkeeping.

Visibility (who may read a goal):
  owner            always
  drafts           owner only
  public           any authenticated user
  friends          accepted friends of the owner
  custom           users holding an ACL row
  private          owner only
Users tagged on a published goal may read it regardless of visibility.
Only the owner may modify a goal or anything hanging off it.
"""
from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import and_, false, or_
from sqlmodel import select

from ..models import (
    Goal, GoalACL, GoalComment, GoalItem, GoalLike, GoalTag, User, get_session, utcnow,
)
from .cache import GOAL_CACHE
from .errors import Forbidden, InvalidInput, NotFound
from .friendships import are_friends, friend_ids

STATUSES = ("active", "completed", "archived")
VISIBILITIES = ("public", "friends", "custom", "private")
ACL_ROLES = ("viewer", "editor")
LEGACY_STATUSES = {"proposed": "active"}


def normalize_status(value: str) -> str:
    value = LEGACY_STATUSES.get(value, value)
    if value not in STATUSES:
        raise InvalidInput(f"Invalid goal status: {value}")
    return value


def _check_visibility(value: str) -> str:
    if value not in VISIBILITIES:
        raise InvalidInput(f"Invalid visibility: {value}")
    return value


def _check_acl(session, acl: dict[str, str], owner_id: str) -> dict[str, str]:
    cleaned = {}
    for user_id, role in acl.items():
        if role not in ACL_ROLES:
            raise InvalidInput(f"Invalid ACL role: {role}")
        if user_id != owner_id:
            cleaned[user_id] = role
    if cleaned:
        known = set(session.exec(select(User.id).where(User.id.in_(list(cleaned)))))  # type: ignore[attr-defined]
        unknown = sorted(set(cleaned) - known)
        if unknown:
            raise InvalidInput(f"Unknown ACL users: {', '.join(unknown)}")
    return cleaned


def item_dict(item: GoalItem) -> dict:
    return {
        "id": item.id,
        "goal_id": item.goal_id,
        "title": item.title,
        "completed": item.completed,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def goal_dict(goal: Goal, items: Optional[list[GoalItem]] = None) -> dict:
    data = {
        "id": goal.id,
        "owner_id": goal.owner_id,
        "title": goal.title,
        "body": goal.body,
        "status": normalize_status(goal.status),
        "visibility": goal.visibility,
        "cover_image_url": goal.cover_image_url,
        "is_draft": goal.is_draft,
        "created_at": goal.created_at,
        "updated_at": goal.updated_at,
    }
    if items is not None:
        data["items"] = [item_dict(i) for i in items]
    return data


# ---------------------------------------------------------------- loading

def _items_for(session, goal_ids: list[str]) -> dict[str, list[GoalItem]]:
    grouped: dict[str, list[GoalItem]] = {gid: [] for gid in goal_ids}
    if not goal_ids:
        return grouped
    rows = session.exec(
        select(GoalItem).where(GoalItem.goal_id.in_(goal_ids)).order_by(GoalItem.created_at)  # type: ignore[attr-defined]
    ).all()
    for row in rows:
        grouped[row.goal_id].append(row)
    return grouped


def items_for(goal_ids: list[str]) -> dict[str, list[GoalItem]]:
    with get_session() as session:
        return _items_for(session, goal_ids)


def _owned(session, goal_id: str, user_id: str) -> Goal:
    goal = session.get(Goal, goal_id)
    if not goal:
        raise NotFound("Goal not found")
    if goal.owner_id != user_id:
        raise Forbidden("Only the goal owner can do that")
    return goal


def load_goal(goal_id: str) -> Goal:
    cached = GOAL_CACHE.get(goal_id)
    if cached is not None:
        return cached
    with get_session() as session:
        goal = session.get(Goal, goal_id)
    if not goal:
        raise NotFound("Goal not found")
    GOAL_CACHE.set(goal_id, goal)
    return goal


def can_view(goal: Goal, viewer_id: str) -> bool:
    if goal.owner_id == viewer_id:
        return True
    if goal.is_draft:
        return False
    if goal.visibility == "public":
        return True
    with get_session() as session:
        tagged = session.exec(
            select(GoalTag).where(GoalTag.goal_id == goal.id).where(GoalTag.user_id == viewer_id)
        ).first()
        if tagged:
            return True
        if goal.visibility == "custom":
            return session.exec(
                select(GoalACL).where(GoalACL.goal_id == goal.id).where(GoalACL.user_id == viewer_id)
            ).first() is not None
    if goal.visibility == "friends":
        return are_friends(goal.owner_id, viewer_id)
    return False


def get_visible_goal(goal_id: str, viewer_id: str) -> Goal:
    """Load a goal the viewer may read; invisible goals look missing."""
    goal = load_goal(goal_id)
    if not can_view(goal, viewer_id):
        raise NotFound("Goal not found")
    return goal


def _visible_clause(viewer_id: str):
    friends = list(friend_ids(viewer_id))
    acl_goals = select(GoalACL.goal_id).where(GoalACL.user_id == viewer_id)
    tagged_goals = select(GoalTag.goal_id).where(GoalTag.user_id == viewer_id)
    return or_(
        Goal.owner_id == viewer_id,
        Goal.visibility == "public",
        and_(Goal.visibility == "friends", Goal.owner_id.in_(friends)) if friends else false(),  # type: ignore[attr-defined]
        and_(Goal.visibility == "custom", Goal.id.in_(acl_goals)),  # type: ignore[attr-defined]
        Goal.id.in_(tagged_goals),  # type: ignore[attr-defined]
    )


def list_feed(viewer_id: str, owner_id: Optional[str] = None, limit: int = 20, offset: int = 0) -> list[dict]:
    """Published goals visible to the viewer, newest first, with items."""
    stmt = select(Goal).where(Goal.is_draft == False).where(_visible_clause(viewer_id))  # noqa: E712
    if owner_id:
        stmt = stmt.where(Goal.owner_id == owner_id)
    stmt = stmt.order_by(Goal.created_at.desc()).offset(offset).limit(limit)  # type: ignore[attr-defined]
    with get_session() as session:
        goals = list(session.exec(stmt))
        items = _items_for(session, [g.id for g in goals])
    GOAL_CACHE.set_many({g.id: g for g in goals})
    return [goal_dict(g, items[g.id]) for g in goals]


def list_drafts(owner_id: str) -> list[dict]:
    with get_session() as session:
        goals = list(session.exec(
            select(Goal)
            .where(Goal.owner_id == owner_id)
            .where(Goal.is_draft == True)  # noqa: E712
            .order_by(Goal.created_at.desc())  # type: ignore[attr-defined]
        ))
        items = _items_for(session, [g.id for g in goals])
    return [goal_dict(g, items[g.id]) for g in goals]


def filter_visible(goal_ids: Iterable[str], viewer_id: str) -> list[Goal]:
    ids = list(dict.fromkeys(goal_ids))
    if not ids:
        return []
    with get_session() as session:
        goals = list(session.exec(
            select(Goal)
            .where(Goal.id.in_(ids))  # type: ignore[attr-defined]
            .where(or_(Goal.is_draft == False, Goal.owner_id == viewer_id))  # noqa: E712
            .where(_visible_clause(viewer_id))
            .order_by(Goal.created_at.desc())  # type: ignore[attr-defined]
        ))
    return goals


# ---------------------------------------------------------------- writes

def create_goal(
    owner_id: str,
    title: str,
    body: Optional[str] = None,
    visibility: str = "public",
    is_draft: bool = False,
    items: Iterable[str] = (),
    acl: Optional[dict[str, str]] = None,
) -> dict:
    title = title.strip()
    if not title:
        raise InvalidInput("Title is required")
    _check_visibility(visibility)
    titles = [t.strip() for t in items if t and t.strip()]
    with get_session() as session:
        acl = _check_acl(session, acl or {}, owner_id)
        if visibility == "custom" and not acl:
            raise InvalidInput("Custom visibility needs at least one user")
        goal = Goal(owner_id=owner_id, title=title, body=body or None, status="active",
                    visibility=visibility, is_draft=is_draft)
        session.add(goal)
        rows = [GoalItem(goal_id=goal.id, title=t) for t in titles]
        for row in rows:
            session.add(row)
        if visibility == "custom":
            for user_id, role in acl.items():
                session.add(GoalACL(goal_id=goal.id, user_id=user_id, role=role))
        session.commit()
    logger.info({"type": "goal_created", "goal_id": goal.id, "visibility": visibility,
                 "is_draft": is_draft, "items": len(rows)})
    return goal_dict(goal, rows)


def _replace_acl(session, goal_id: str, acl: dict[str, str]) -> None:
    current = {row.user_id: row for row in session.exec(select(GoalACL).where(GoalACL.goal_id == goal_id))}
    for user_id, row in current.items():
        if user_id not in acl:
            session.delete(row)
        elif row.role != acl[user_id]:
            row.role = acl[user_id]
            session.add(row)
    for user_id, role in acl.items():
        if user_id not in current:
            session.add(GoalACL(goal_id=goal_id, user_id=user_id, role=role))


def _clear_acl(session, goal_id: str) -> None:
    for row in session.exec(select(GoalACL).where(GoalACL.goal_id == goal_id)):
        session.delete(row)


def update_goal(
    user_id: str,
    goal_id: str,
    title: Optional[str] = None,
    body: Optional[str] = None,
    status: Optional[str] = None,
    visibility: Optional[str] = None,
    cover_image_url: Optional[str] = None,
    acl: Optional[dict[str, str]] = None,
) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        if title is not None:
            if not title.strip():
                raise InvalidInput("Title is required")
            goal.title = title.strip()
        if body is not None:
            goal.body = body or None
        if status is not None:
            goal.status = normalize_status(status)
        if visibility is not None:
            goal.visibility = _check_visibility(visibility)
        if cover_image_url is not None:
            goal.cover_image_url = cover_image_url or None
        if goal.visibility == "custom":
            if acl is not None:
                _replace_acl(session, goal.id, _check_acl(session, acl, goal.owner_id))
            session.flush()
            remaining = session.exec(select(GoalACL).where(GoalACL.goal_id == goal.id)).first()
            if remaining is None:
                raise InvalidInput("Custom visibility needs at least one user")
        else:
            # ACL rows only ever exist on custom goals
            _clear_acl(session, goal.id)
        # saving a draft publishes it
        goal.is_draft = False
        goal.updated_at = utcnow()
        session.add(goal)
        session.commit()
        items = _items_for(session, [goal.id])[goal.id]
    GOAL_CACHE.invalidate(goal_id)
    return goal_dict(goal, items)


def set_acl(user_id: str, goal_id: str, acl: dict[str, str]) -> list[GoalACL]:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        if goal.visibility != "custom":
            raise InvalidInput("ACL entries only apply to custom visibility")
        cleaned = _check_acl(session, acl, goal.owner_id)
        if not cleaned:
            raise InvalidInput("Custom visibility needs at least one user")
        _replace_acl(session, goal.id, cleaned)
        session.commit()
        return list(session.exec(select(GoalACL).where(GoalACL.goal_id == goal_id)))


def get_acl(user_id: str, goal_id: str) -> list[GoalACL]:
    with get_session() as session:
        _owned(session, goal_id, user_id)
        return list(session.exec(select(GoalACL).where(GoalACL.goal_id == goal_id)))


def publish_draft(user_id: str, goal_id: str) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        goal.is_draft = False
        goal.updated_at = utcnow()
        session.add(goal)
        session.commit()
    GOAL_CACHE.invalidate(goal_id)
    logger.info({"type": "goal_published", "goal_id": goal_id})
    return goal_dict(goal)


def archive_goal(user_id: str, goal_id: str) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        goal.status = "archived"
        goal.updated_at = utcnow()
        session.add(goal)
        session.commit()
    GOAL_CACHE.invalidate(goal_id)
    return goal_dict(goal)


def unarchive_goal(user_id: str, goal_id: str) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        items = _items_for(session, [goal.id])[goal.id]
        goal.status = "completed" if items and all(i.completed for i in items) else "active"
        goal.updated_at = utcnow()
        session.add(goal)
        session.commit()
    GOAL_CACHE.invalidate(goal_id)
    return goal_dict(goal, items)


def delete_goal(user_id: str, goal_id: str) -> None:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        for model in (GoalItem, GoalACL, GoalTag, GoalLike, GoalComment):
            for row in session.exec(select(model).where(model.goal_id == goal_id)):  # type: ignore[attr-defined]
                session.delete(row)
        session.flush()
        session.delete(goal)
        session.commit()
    GOAL_CACHE.invalidate(goal_id)
    logger.info({"type": "goal_deleted", "goal_id": goal_id})


# ---------------------------------------------------------------- items

def sync_status(session, goal: Goal) -> bool:
    """Align goal status with checklist completion. Returns True on change."""
    if goal.status == "archived":
        return False
    items = _items_for(session, [goal.id])[goal.id]
    if not items:
        return False
    all_done = all(i.completed for i in items)
    wanted = "completed" if all_done else "active"
    current = normalize_status(goal.status)
    if (all_done and current == "completed") or (not all_done and current != "completed"):
        return False
    goal.status = wanted
    goal.updated_at = utcnow()
    session.add(goal)
    logger.info({"type": "goal_status_synced", "goal_id": goal.id, "status": wanted})
    return True


def _finish_item_change(session, goal: Goal) -> dict:
    session.flush()
    sync_status(session, goal)
    session.commit()
    GOAL_CACHE.invalidate(goal.id)
    items = _items_for(session, [goal.id])[goal.id]
    return goal_dict(goal, items)


def add_item(user_id: str, goal_id: str, title: str) -> dict:
    title = title.strip()
    if not title:
        raise InvalidInput("Item title is required")
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        session.add(GoalItem(goal_id=goal.id, title=title))
        return _finish_item_change(session, goal)


def _owned_item(session, goal: Goal, item_id: str) -> GoalItem:
    item = session.get(GoalItem, item_id)
    if not item or item.goal_id != goal.id:
        raise NotFound("Item not found")
    return item


def update_item(user_id: str, goal_id: str, item_id: str,
                title: Optional[str] = None, completed: Optional[bool] = None) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        item = _owned_item(session, goal, item_id)
        if title is not None:
            if not title.strip():
                raise InvalidInput("Item title is required")
            item.title = title.strip()
        if completed is not None:
            item.completed = completed
        item.updated_at = utcnow()
        session.add(item)
        return _finish_item_change(session, goal)


def toggle_item(user_id: str, goal_id: str, item_id: str) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        item = _owned_item(session, goal, item_id)
        item.completed = not item.completed
        item.updated_at = utcnow()
        session.add(item)
        return _finish_item_change(session, goal)


def delete_item(user_id: str, goal_id: str, item_id: str) -> dict:
    with get_session() as session:
        goal = _owned(session, goal_id, user_id)
        session.delete(_owned_item(session, goal, item_id))
        return _finish_item_change(session, goal)
