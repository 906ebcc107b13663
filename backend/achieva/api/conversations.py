"""Conversations, messages and the message long-poll."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from ..models import User
from ..services import messaging
from ..services.auth import current_user
from ..services.polling import poll_messages

router = APIRouter()


class DirectPayload(BaseModel):
    user_id: str


class GroupPayload(BaseModel):
    name: str
    participant_ids: List[str]


class MessagePayload(BaseModel):
    text: Optional[str] = None
    message_type: str = "text"
    media_url: Optional[str] = None


@router.post('/conversations/direct')
def direct(payload: DirectPayload, user: User = Depends(current_user)):
    return messaging.get_or_create_direct(user.id, payload.user_id)


@router.post('/conversations/group')
def group(payload: GroupPayload, user: User = Depends(current_user)):
    return messaging.create_group(user.id, payload.name, payload.participant_ids)


@router.get('/conversations')
def list_conversations(user: User = Depends(current_user)):
    return messaging.list_conversations(user.id)


@router.get('/conversations/{conversation_id}')
def get_conversation(conversation_id: str, user: User = Depends(current_user)):
    return messaging.get_conversation(user.id, conversation_id)


@router.post('/conversations/{conversation_id}/messages')
def send(conversation_id: str, payload: MessagePayload, user: User = Depends(current_user)):
    return messaging.send_message(user.id, conversation_id, text=payload.text,
                                  message_type=payload.message_type, media_url=payload.media_url)


@router.get('/conversations/{conversation_id}/messages')
def messages(conversation_id: str,
             limit: int = Query(messaging.DEFAULT_PAGE_SIZE, ge=1, le=200),
             before: Optional[str] = None,
             user: User = Depends(current_user)):
    return messaging.list_messages(user.id, conversation_id, limit=limit, before=before)


@router.get('/conversations/{conversation_id}/messages/poll')
async def messages_poll(conversation_id: str, since: Optional[str] = None,
                        timeout: float = Query(25.0, ge=0),
                        user: User = Depends(current_user)):
    return await poll_messages(user.id, conversation_id, since, timeout)


@router.post('/conversations/{conversation_id}/read')
def mark_read(conversation_id: str, user: User = Depends(current_user)):
    return messaging.mark_read(user.id, conversation_id)


@router.delete('/messages/{message_id}')
def delete_message(message_id: str, user: User = Depends(current_user)):
    return messaging.delete_message(user.id, message_id)
