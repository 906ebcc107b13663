from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from ..models import User
from ..services.auth import current_user
from ..services.friendships import statuses_for
from ..services.profiles import (
    SEARCH_LIMIT, get_profile, get_profiles, profile_dict, search_profiles, update_profile,
)

router = APIRouter()


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    avatar_url: Optional[str] = None


@router.get('/profiles/me')
def my_profile(user: User = Depends(current_user)):
    return profile_dict(get_profile(user.id))


@router.put('/profiles/me')
def update_my_profile(payload: ProfileUpdate, user: User = Depends(current_user)):
    profile = update_profile(user.id, **payload.model_dump(exclude_unset=True))
    return profile_dict(profile)


@router.get('/profiles/search')
def search(q: str = "", limit: int = Query(SEARCH_LIMIT, ge=1, le=100), user: User = Depends(current_user)):
    """Profiles matching q, each with the caller's friendship status."""
    found = search_profiles(q, exclude_user_id=user.id, limit=limit)
    statuses = statuses_for(user.id, [p.id for p in found])
    return [{**profile_dict(p), "friendship": statuses.get(p.id)} for p in found]


@router.get('/profiles')
def batch(ids: str = "", user: User = Depends(current_user)):
    wanted = [i.strip() for i in ids.split(',') if i.strip()]
    found = get_profiles(wanted)
    return [profile_dict(found[i]) for i in wanted if i in found]


@router.get('/profiles/{user_id}')
def get_one(user_id: str, user: User = Depends(current_user)):
    return profile_dict(get_profile(user_id))
