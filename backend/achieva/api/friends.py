from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from ..models import User
from ..services import friendships
from ..services.auth import current_user
from ..services.profiles import get_profiles, profile_dict

router = APIRouter()


class FriendRequestPayload(BaseModel):
    user_id: str


def _with_profiles(user_id: str, rows) -> list[dict]:
    others = [r.user_id_2 if r.user_id_1 == user_id else r.user_id_1 for r in rows]
    profiles = get_profiles(others)
    out = []
    for row, other in zip(rows, others):
        profile = profiles.get(other)
        out.append({**friendships.friendship_dict(row), "profile": profile_dict(profile) if profile else None})
    return out


@router.get('/friends')
def list_friends(user: User = Depends(current_user)):
    groups = friendships.relationships(user.id)
    return {name: _with_profiles(user.id, rows) for name, rows in groups.items()}


@router.get('/friends/count')
def count(user_id: Optional[str] = None, user: User = Depends(current_user)):
    return {"count": friendships.friend_count(user_id or user.id)}


@router.post('/friends/requests')
def send_request(payload: FriendRequestPayload, user: User = Depends(current_user)):
    return friendships.friendship_dict(friendships.send_request(user.id, payload.user_id))


@router.post('/friends/requests/{friendship_id}/accept')
def accept(friendship_id: str, user: User = Depends(current_user)):
    return friendships.friendship_dict(friendships.accept_request(user.id, friendship_id))


@router.post('/friends/requests/{friendship_id}/reject')
def reject(friendship_id: str, user: User = Depends(current_user)):
    friendships.reject_request(user.id, friendship_id)
    return {"ok": True}


@router.delete('/friends/{other_id}')
def unfriend(other_id: str, user: User = Depends(current_user)):
    friendships.unfriend(user.id, other_id)
    return {"ok": True}


@router.post('/friends/{other_id}/block')
def block(other_id: str, user: User = Depends(current_user)):
    return friendships.friendship_dict(friendships.block(user.id, other_id))
