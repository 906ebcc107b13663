"""Profile lookups, search and updates.

Reads go through PROFILE_CACHE; any write invalidates the cached row.
"""
from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import func, or_
from sqlmodel import select

from ..models import Profile, get_session, utcnow
from .cache import PROFILE_CACHE
from .errors import Conflict, NotFound

SEARCH_LIMIT = 50


def profile_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "username": profile.username,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "full_name": profile.full_name,
        "date_of_birth": profile.date_of_birth,
        "avatar_url": profile.avatar_url,
        "created_at": profile.created_at,
        "updated_at": profile.updated_at,
    }


def get_profile(user_id: str) -> Profile:
    cached = PROFILE_CACHE.get(user_id)
    if cached is not None:
        return cached
    with get_session() as session:
        profile = session.get(Profile, user_id)
    if not profile:
        raise NotFound("Profile not found")
    PROFILE_CACHE.set(user_id, profile)
    return profile


def get_profiles(user_ids: Iterable[str]) -> dict[str, Profile]:
    """Batch lookup; unknown ids are simply absent from the result."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    found, missing = PROFILE_CACHE.get_many(ids)
    if missing:
        with get_session() as session:
            rows = session.exec(select(Profile).where(Profile.id.in_(missing))).all()  # type: ignore[attr-defined]
        fetched = {p.id: p for p in rows}
        PROFILE_CACHE.set_many(fetched)
        found.update(fetched)
    return found


def search_profiles(query: str, exclude_user_id: str, limit: int = SEARCH_LIMIT) -> list[Profile]:
    query = query.strip()
    if not query:
        return []
    # match wildcards literally
    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    stmt = (
        select(Profile)
        .where(Profile.id != exclude_user_id)
        .where(or_(
            func.lower(Profile.username).like(pattern, escape="\\"),
            func.lower(Profile.first_name).like(pattern, escape="\\"),
            func.lower(Profile.last_name).like(pattern, escape="\\"),
        ))
        .order_by(Profile.username)
        .limit(limit)
    )
    with get_session() as session:
        return list(session.exec(stmt))


def update_profile(
    user_id: str,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    date_of_birth: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> Profile:
    with get_session() as session:
        profile = session.get(Profile, user_id)
        if not profile:
            raise NotFound("Profile not found")
        if username is not None and username != profile.username:
            taken = session.exec(select(Profile).where(Profile.username == username)).first()
            if taken and taken.id != user_id:
                raise Conflict("Username already taken")
            profile.username = username
        if first_name is not None:
            profile.first_name = first_name
        if last_name is not None:
            profile.last_name = last_name
        if date_of_birth is not None:
            profile.date_of_birth = date_of_birth
        if avatar_url is not None:
            profile.avatar_url = avatar_url or None
        profile.updated_at = utcnow()
        session.add(profile)
        session.commit()
    PROFILE_CACHE.invalidate(user_id)
    logger.info({"type": "profile_updated", "user_id": user_id})
    return profile
