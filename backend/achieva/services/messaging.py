"""Direct and group conversations between friends."""
from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import func
from sqlmodel import select

from ..models import Conversation, ConversationParticipant, Message, get_session, utcnow
from .errors import Forbidden, InvalidInput, NotFound
from .friendships import are_friends
from .notifications import notify
from .profiles import get_profile, get_profiles, profile_dict

MESSAGE_TYPES = ("text", "image", "video", "audio", "file")
LEGACY_MESSAGE_TYPES = {
    "goal_proposal": "text",
    "goal_event": "text",
    "goal_publish_proposal": "text",
}
DEFAULT_PAGE_SIZE = 50
PREVIEW_LENGTH = 100


def normalize_message_type(value: Optional[str]) -> str:
    if value in MESSAGE_TYPES:
        return value  # type: ignore[return-value]
    if value in LEGACY_MESSAGE_TYPES:
        return LEGACY_MESSAGE_TYPES[value]
    logger.warning("Unknown message type {!r}, defaulting to text", value)
    return "text"


def participant_dict(p: ConversationParticipant) -> dict:
    return {
        "id": p.id,
        "conversation_id": p.conversation_id,
        "user_id": p.user_id,
        "joined_at": p.joined_at,
        "last_read_at": p.last_read_at,
    }


def message_dict(m: Message, sender=None) -> dict:
    data = {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "user_id": m.user_id,
        "text": m.text,
        "message_type": normalize_message_type(m.message_type),
        "media_url": m.media_url,
        "created_at": m.created_at,
        "updated_at": m.updated_at,
        "deleted_at": m.deleted_at,
    }
    if sender is not None:
        data["sender_profile"] = profile_dict(sender)
    return data


def conversation_dict(c: Conversation) -> dict:
    return {
        "id": c.id,
        "type": c.type,
        "name": c.name,
        "created_by": c.created_by,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
        "last_message_at": c.last_message_at,
    }


def display_name(conversation: Conversation, other_profile=None) -> str:
    if conversation.name:
        return conversation.name
    if conversation.type == "direct" and other_profile is not None:
        return other_profile.full_name or other_profile.username
    return "Conversation"


# ---------------------------------------------------------------- helpers

def _participants(session, conversation_id: str) -> list[ConversationParticipant]:
    return list(session.exec(
        select(ConversationParticipant)
        .where(ConversationParticipant.conversation_id == conversation_id)
        .order_by(ConversationParticipant.joined_at)
    ))


def _membership(session, conversation_id: str, user_id: str) -> Optional[ConversationParticipant]:
    return session.exec(
        select(ConversationParticipant)
        .where(ConversationParticipant.conversation_id == conversation_id)
        .where(ConversationParticipant.user_id == user_id)
    ).first()


def require_participant(session, conversation_id: str, user_id: str) -> Conversation:
    conversation = session.get(Conversation, conversation_id)
    if not conversation:
        raise NotFound("Conversation not found")
    if _membership(session, conversation_id, user_id) is None:
        raise Forbidden("You are not a participant in this conversation")
    return conversation


def _find_direct(session, a: str, b: str) -> Optional[Conversation]:
    mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == a)
    theirs = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == b)
    return session.exec(
        select(Conversation)
        .where(Conversation.type == "direct")
        .where(Conversation.id.in_(mine))  # type: ignore[attr-defined]
        .where(Conversation.id.in_(theirs))  # type: ignore[attr-defined]
        .order_by(Conversation.created_at)
    ).first()


def _with_participants(session, conversation: Conversation) -> dict:
    data = conversation_dict(conversation)
    data["participants"] = [participant_dict(p) for p in _participants(session, conversation.id)]
    return data


# ---------------------------------------------------------------- conversations

def get_or_create_direct(user_id: str, other_id: str) -> dict:
    if user_id == other_id:
        raise InvalidInput("You cannot message yourself")
    if not are_friends(user_id, other_id):
        raise Forbidden("You can only message friends")
    with get_session() as session:
        existing = _find_direct(session, user_id, other_id)
        if existing:
            return _with_participants(session, existing)
        conversation = Conversation(type="direct", created_by=user_id)
        session.add(conversation)
        session.add(ConversationParticipant(conversation_id=conversation.id, user_id=user_id))
        session.add(ConversationParticipant(conversation_id=conversation.id, user_id=other_id))
        session.commit()
        logger.info({"type": "conversation_created", "id": conversation.id, "kind": "direct"})
        return _with_participants(session, conversation)


def create_group(user_id: str, name: str, participant_ids: Iterable[str]) -> dict:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Group name is required")
    others = [pid for pid in dict.fromkeys(participant_ids) if pid != user_id]
    if not others:
        raise InvalidInput("A group needs at least one other participant")
    for pid in others:
        if not are_friends(user_id, pid):
            raise Forbidden("All participants must be friends")
    with get_session() as session:
        conversation = Conversation(type="group", name=name, created_by=user_id)
        session.add(conversation)
        for pid in [user_id, *others]:
            session.add(ConversationParticipant(conversation_id=conversation.id, user_id=pid))
        session.commit()
        logger.info({"type": "conversation_created", "id": conversation.id, "kind": "group",
                     "participants": len(others) + 1})
        return _with_participants(session, conversation)


def _unread_count(session, conversation_id: str, member: ConversationParticipant) -> int:
    stmt = (
        select(func.count()).select_from(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.user_id != member.user_id)
        .where(Message.deleted_at == None)  # noqa: E711
    )
    if member.last_read_at:
        stmt = stmt.where(Message.created_at > member.last_read_at)
    return session.exec(stmt).one()


def _last_message(session, conversation_id: str) -> Optional[Message]:
    return session.exec(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.deleted_at == None)  # noqa: E711
        .order_by(Message.created_at.desc())  # type: ignore[attr-defined]
    ).first()


def _summary(session, conversation: Conversation, member: ConversationParticipant) -> dict:
    data = _with_participants(session, conversation)
    last = _last_message(session, conversation.id)
    data["last_message"] = message_dict(last) if last else None
    data["unread_count"] = _unread_count(session, conversation.id, member)
    other = None
    if conversation.type == "direct":
        other_ids = [p["user_id"] for p in data["participants"] if p["user_id"] != member.user_id]
        if other_ids:
            other = get_profiles(other_ids).get(other_ids[0])
    data["other_participant_profile"] = profile_dict(other) if other else None
    data["display_name"] = display_name(conversation, other)
    return data


def list_conversations(user_id: str) -> list[dict]:
    with get_session() as session:
        members = {
            m.conversation_id: m for m in session.exec(
                select(ConversationParticipant).where(ConversationParticipant.user_id == user_id)
            )
        }
        if not members:
            return []
        conversations = list(session.exec(
            select(Conversation).where(Conversation.id.in_(list(members)))  # type: ignore[attr-defined]
        ))
        # newest activity first, never-messaged conversations last
        conversations.sort(key=lambda c: c.created_at, reverse=True)
        conversations.sort(key=lambda c: c.last_message_at or "", reverse=True)
        return [_summary(session, c, members[c.id]) for c in conversations]


def get_conversation(user_id: str, conversation_id: str) -> dict:
    with get_session() as session:
        conversation = require_participant(session, conversation_id, user_id)
        return _summary(session, conversation, _membership(session, conversation_id, user_id))


# ---------------------------------------------------------------- messages

def send_message(user_id: str, conversation_id: str, text: Optional[str] = None,
                 message_type: str = "text", media_url: Optional[str] = None) -> dict:
    message_type = normalize_message_type(message_type)
    text = text.strip() if text else None
    if message_type == "text" and not text:
        raise InvalidInput("Message text is required")
    if message_type != "text" and not media_url:
        raise InvalidInput(f"{message_type} messages need a media_url")
    with get_session() as session:
        conversation = require_participant(session, conversation_id, user_id)
        now = utcnow()
        message = Message(conversation_id=conversation_id, user_id=user_id, text=text,
                          message_type=message_type, media_url=media_url,
                          created_at=now, updated_at=now)
        session.add(message)
        conversation.last_message_at = now
        conversation.updated_at = now
        session.add(conversation)
        sender = get_profile(user_id)
        title = conversation.name or (sender.full_name or sender.username)
        preview = (text or f"Sent {message_type}")[:PREVIEW_LENGTH]
        for member in _participants(session, conversation_id):
            if member.user_id != user_id:
                notify(session, member.user_id, "message", title=title, body=preview,
                       related_id=conversation_id)
        session.commit()
    logger.info({"type": "message_sent", "conversation_id": conversation_id, "message_id": message.id})
    return message_dict(message)


def list_messages(user_id: str, conversation_id: str, limit: int = DEFAULT_PAGE_SIZE,
                  before: Optional[str] = None) -> list[dict]:
    """A page of messages older than `before`, in chronological order."""
    with get_session() as session:
        require_participant(session, conversation_id, user_id)
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .where(Message.deleted_at == None)  # noqa: E711
        )
        if before:
            stmt = stmt.where(Message.created_at < before)
        rows = list(session.exec(stmt.order_by(Message.created_at.desc()).limit(limit)))  # type: ignore[attr-defined]
    rows.reverse()
    senders = get_profiles(m.user_id for m in rows)
    return [message_dict(m, senders.get(m.user_id)) for m in rows]


def latest_message(user_id: str, conversation_id: str) -> Optional[Message]:
    with get_session() as session:
        require_participant(session, conversation_id, user_id)
        return _last_message(session, conversation_id)


def messages_since(user_id: str, conversation_id: str, since: Optional[str]) -> list[dict]:
    with get_session() as session:
        require_participant(session, conversation_id, user_id)
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .where(Message.deleted_at == None)  # noqa: E711
        )
        if since:
            stmt = stmt.where(Message.created_at > since)
        rows = list(session.exec(stmt.order_by(Message.created_at)))
    senders = get_profiles(m.user_id for m in rows)
    return [message_dict(m, senders.get(m.user_id)) for m in rows]


def mark_read(user_id: str, conversation_id: str) -> dict:
    with get_session() as session:
        require_participant(session, conversation_id, user_id)
        member = _membership(session, conversation_id, user_id)
        member.last_read_at = utcnow()
        session.add(member)
        session.commit()
        return participant_dict(member)


def delete_message(user_id: str, message_id: str) -> dict:
    with get_session() as session:
        message = session.get(Message, message_id)
        if not message or message.deleted_at:
            raise NotFound("Message not found")
        if message.user_id != user_id:
            raise Forbidden("Only the sender can delete a message")
        message.deleted_at = utcnow()
        message.updated_at = message.deleted_at
        session.add(message)
        session.commit()
        return message_dict(message)
