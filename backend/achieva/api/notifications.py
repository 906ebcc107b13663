from fastapi import APIRouter, Depends, Query
from ..models import User
from ..services import notifications
from ..services.auth import current_user

router = APIRouter()


@router.get('/notifications')
def list_notifications(limit: int = Query(50, ge=1, le=200),
                       offset: int = Query(0, ge=0),
                       user: User = Depends(current_user)):
    rows = notifications.list_notifications(user.id, limit=limit, offset=offset)
    return [notifications.notification_dict(n) for n in rows]


@router.get('/notifications/unread-count')
def unread_count(user: User = Depends(current_user)):
    return notifications.unread_counts(user.id)


@router.post('/notifications/read-all')
def read_all(user: User = Depends(current_user)):
    return {"updated": notifications.mark_all_read(user.id)}


@router.post('/notifications/{notification_id}/read')
def read_one(notification_id: str, user: User = Depends(current_user)):
    return notifications.notification_dict(notifications.mark_read(user.id, notification_id))
