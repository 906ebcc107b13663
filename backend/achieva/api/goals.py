"""Goal CRUD, checklist items and ACL endpoints."""
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from ..models import User
from ..services import goals as goal_service
from ..services.auth import current_user

router = APIRouter()


class GoalCreate(BaseModel):
    title: str
    body: Optional[str] = None
    visibility: str = "public"
    is_draft: bool = False
    items: List[str] = []
    acl: Dict[str, str] = {}


class GoalUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    status: Optional[str] = None
    visibility: Optional[str] = None
    cover_image_url: Optional[str] = None
    acl: Optional[Dict[str, str]] = None


class ACLPayload(BaseModel):
    acl: Dict[str, str]


class ItemCreate(BaseModel):
    title: str


class ItemUpdate(BaseModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


def _acl_out(rows) -> list[dict]:
    return [{"id": r.id, "goal_id": r.goal_id, "user_id": r.user_id, "role": r.role,
             "created_at": r.created_at} for r in rows]


@router.post('/goals')
def create_goal(payload: GoalCreate, user: User = Depends(current_user)):
    return goal_service.create_goal(
        user.id, payload.title, body=payload.body, visibility=payload.visibility,
        is_draft=payload.is_draft, items=payload.items, acl=payload.acl,
    )


@router.get('/goals')
def feed(owner_id: Optional[str] = None,
         limit: int = Query(20, ge=1, le=100),
         offset: int = Query(0, ge=0),
         user: User = Depends(current_user)):
    return goal_service.list_feed(user.id, owner_id=owner_id, limit=limit, offset=offset)


@router.get('/goals/drafts')
def drafts(user: User = Depends(current_user)):
    return goal_service.list_drafts(user.id)


@router.get('/goals/{goal_id}')
def get_goal(goal_id: str, user: User = Depends(current_user)):
    goal = goal_service.get_visible_goal(goal_id, user.id)
    return goal_service.goal_dict(goal, goal_service.items_for([goal.id])[goal.id])


@router.patch('/goals/{goal_id}')
def update_goal(goal_id: str, payload: GoalUpdate, user: User = Depends(current_user)):
    return goal_service.update_goal(user.id, goal_id, **payload.model_dump(exclude_unset=True))


@router.delete('/goals/{goal_id}')
def delete_goal(goal_id: str, user: User = Depends(current_user)):
    goal_service.delete_goal(user.id, goal_id)
    return {"ok": True}


@router.post('/goals/{goal_id}/publish')
def publish(goal_id: str, user: User = Depends(current_user)):
    return goal_service.publish_draft(user.id, goal_id)


@router.post('/goals/{goal_id}/archive')
def archive(goal_id: str, user: User = Depends(current_user)):
    return goal_service.archive_goal(user.id, goal_id)


@router.post('/goals/{goal_id}/unarchive')
def unarchive(goal_id: str, user: User = Depends(current_user)):
    return goal_service.unarchive_goal(user.id, goal_id)


@router.get('/goals/{goal_id}/acl')
def get_acl(goal_id: str, user: User = Depends(current_user)):
    return _acl_out(goal_service.get_acl(user.id, goal_id))


@router.put('/goals/{goal_id}/acl')
def put_acl(goal_id: str, payload: ACLPayload, user: User = Depends(current_user)):
    return _acl_out(goal_service.set_acl(user.id, goal_id, payload.acl))


# Items

@router.post('/goals/{goal_id}/items')
def add_item(goal_id: str, payload: ItemCreate, user: User = Depends(current_user)):
    return goal_service.add_item(user.id, goal_id, payload.title)


@router.patch('/goals/{goal_id}/items/{item_id}')
def update_item(goal_id: str, item_id: str, payload: ItemUpdate, user: User = Depends(current_user)):
    return goal_service.update_item(user.id, goal_id, item_id, **payload.model_dump(exclude_unset=True))


@router.post('/goals/{goal_id}/items/{item_id}/toggle')
def toggle_item(goal_id: str, item_id: str, user: User = Depends(current_user)):
    return goal_service.toggle_item(user.id, goal_id, item_id)


@router.delete('/goals/{goal_id}/items/{item_id}')
def delete_item(goal_id: str, item_id: str, user: User = Depends(current_user)):
    return goal_service.delete_item(user.id, goal_id, item_id)
