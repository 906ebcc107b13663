from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from ..models import User
from ..services import tags as tag_service
from ..services.auth import current_user
from ..services.goals import filter_visible

router = APIRouter()


class TagPayload(BaseModel):
    user_ids: List[str]


class GoalIdsPayload(BaseModel):
    goal_ids: List[str]


class ConversationIdsPayload(BaseModel):
    conversation_ids: List[str]


@router.get('/goals/tagged')
def tagged(user_id: Optional[str] = None, user: User = Depends(current_user)):
    return tag_service.tagged_goals(user.id, user_id or user.id)


@router.post('/goals/tags/batch')
def tags_batch(payload: GoalIdsPayload, user: User = Depends(current_user)):
    visible = [g.id for g in filter_visible(payload.goal_ids, user.id)]
    return tag_service.tags_by_goal(visible)


@router.get('/goals/{goal_id}/tags')
def list_tags(goal_id: str, user: User = Depends(current_user)):
    return tag_service.list_tags(user.id, goal_id)


@router.post('/goals/{goal_id}/tags')
def add_tags(goal_id: str, payload: TagPayload, user: User = Depends(current_user)):
    return tag_service.tag_users(user.id, goal_id, payload.user_ids)


@router.put('/goals/{goal_id}/tags')
def sync_tags(goal_id: str, payload: TagPayload, user: User = Depends(current_user)):
    return tag_service.sync_tags(user.id, goal_id, payload.user_ids)


@router.delete('/goals/{goal_id}/tags/{user_id}')
def remove_tag(goal_id: str, user_id: str, user: User = Depends(current_user)):
    tag_service.untag_user(user.id, goal_id, user_id)
    return {"ok": True}


@router.get('/conversations/{conversation_id}/goals')
def pinned_goals(conversation_id: str, user: User = Depends(current_user)):
    return tag_service.pinned_goals(user.id, conversation_id)


@router.post('/conversations/goal-counts')
def goal_counts(payload: ConversationIdsPayload, user: User = Depends(current_user)):
    return tag_service.goal_counts(user.id, payload.conversation_ids)
