"""Likes, comments and the comment long-poll."""
from typing import List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from ..models import User
from ..services import social
from ..services.auth import current_user
from ..services.goals import filter_visible, get_visible_goal
from ..services.polling import poll_comments

router = APIRouter()


class GoalIdsPayload(BaseModel):
    goal_ids: List[str]


class CommentPayload(BaseModel):
    content: str


def _visible_ids(goal_ids: List[str], user_id: str) -> List[str]:
    return [g.id for g in filter_visible(goal_ids, user_id)]


@router.post('/goals/likes/batch')
def likes_batch(payload: GoalIdsPayload, user: User = Depends(current_user)):
    return social.likes_by_goal(user.id, _visible_ids(payload.goal_ids, user.id))


@router.post('/goals/comments/counts')
def comment_counts(payload: GoalIdsPayload, user: User = Depends(current_user)):
    return social.comment_counts(_visible_ids(payload.goal_ids, user.id))


@router.post('/goals/{goal_id}/like')
def like(goal_id: str, user: User = Depends(current_user)):
    return social.like(user.id, goal_id)


@router.delete('/goals/{goal_id}/like')
def unlike(goal_id: str, user: User = Depends(current_user)):
    return social.unlike(user.id, goal_id)


@router.get('/goals/{goal_id}/likes')
def likes(goal_id: str, user: User = Depends(current_user)):
    get_visible_goal(goal_id, user.id)
    return social.like_summary(user.id, goal_id)


@router.get('/goals/{goal_id}/comments')
def list_comments(goal_id: str, user: User = Depends(current_user)):
    return social.list_comments(user.id, goal_id)


@router.post('/goals/{goal_id}/comments')
def add_comment(goal_id: str, payload: CommentPayload, user: User = Depends(current_user)):
    return social.add_comment(user.id, goal_id, payload.content)


@router.get('/goals/{goal_id}/comments/poll')
async def comments_poll(goal_id: str, known: str = "",
                        timeout: float = Query(25.0, ge=0),
                        user: User = Depends(current_user)):
    """Hold the request until the goal's comment set differs from `known`."""
    ids = [i for i in known.split(',') if i]
    return await poll_comments(user.id, goal_id, ids, timeout)


@router.patch('/comments/{comment_id}')
def edit_comment(comment_id: str, payload: CommentPayload, user: User = Depends(current_user)):
    return social.update_comment(user.id, comment_id, payload.content)


@router.delete('/comments/{comment_id}')
def delete_comment(comment_id: str, user: User = Depends(current_user)):
    social.delete_comment(user.id, comment_id)
    return {"ok": True}
