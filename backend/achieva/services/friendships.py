"""Friend requests and the friendship graph.

A friendship row is directional only in who asked: user_id_1 sent the request
to user_id_2. Lookups always consider both directions.
"""
from __future__ import annotations

from typing import Optional

from loguru import logger
from sqlalchemy import and_, func, or_
from sqlmodel import select

from ..models import Friendship, User, get_session, utcnow
from .errors import Conflict, Forbidden, InvalidInput, NotFound
from .notifications import notify
from .profiles import get_profile

STATUSES = ("pending", "accepted", "blocked")


def friendship_dict(f: Friendship) -> dict:
    return {
        "id": f.id,
        "user_id_1": f.user_id_1,
        "user_id_2": f.user_id_2,
        "status": f.status,
        "established_at": f.established_at,
        "created_at": f.created_at,
    }


def _between(a: str, b: str):
    return or_(
        and_(Friendship.user_id_1 == a, Friendship.user_id_2 == b),
        and_(Friendship.user_id_1 == b, Friendship.user_id_2 == a),
    )


def find_between(session, a: str, b: str) -> Optional[Friendship]:
    return session.exec(select(Friendship).where(_between(a, b))).first()


def are_friends(a: str, b: str) -> bool:
    with get_session() as session:
        row = session.exec(
            select(Friendship).where(_between(a, b)).where(Friendship.status == "accepted")
        ).first()
        return row is not None


def friend_ids(user_id: str) -> set[str]:
    with get_session() as session:
        rows = session.exec(
            select(Friendship)
            .where(or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id))
            .where(Friendship.status == "accepted")
        ).all()
    return {r.user_id_2 if r.user_id_1 == user_id else r.user_id_1 for r in rows}


def friend_count(user_id: str) -> int:
    with get_session() as session:
        return session.exec(
            select(func.count()).select_from(Friendship)
            .where(or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id))
            .where(Friendship.status == "accepted")
        ).one()


def send_request(requester_id: str, recipient_id: str) -> Friendship:
    if requester_id == recipient_id:
        raise InvalidInput("You cannot send a friend request to yourself")
    with get_session() as session:
        if not session.get(User, recipient_id):
            raise NotFound("User not found")
        existing = find_between(session, requester_id, recipient_id)
        if existing:
            if existing.status == "blocked":
                raise Forbidden("Friend requests between these users are blocked")
            raise Conflict(f"Friendship already {existing.status}")
        row = Friendship(user_id_1=requester_id, user_id_2=recipient_id, status="pending")
        session.add(row)
        requester = get_profile(requester_id)
        notify(session, recipient_id, "friend_request",
               title="New friend request",
               body=f"{requester.full_name or requester.username} wants to be your friend",
               related_id=row.id)
        session.commit()
    logger.info({"type": "friend_request", "from": requester_id, "to": recipient_id})
    return row


def _load(session, friendship_id: str) -> Friendship:
    row = session.get(Friendship, friendship_id)
    if not row:
        raise NotFound("Friend request not found")
    return row


def accept_request(user_id: str, friendship_id: str) -> Friendship:
    with get_session() as session:
        row = _load(session, friendship_id)
        if row.user_id_2 != user_id:
            raise Forbidden("Only the recipient can accept a friend request")
        if row.status != "pending":
            raise Conflict(f"Friendship already {row.status}")
        row.status = "accepted"
        row.established_at = utcnow()
        session.add(row)
        session.commit()
    logger.info({"type": "friendship_accepted", "id": friendship_id})
    return row


def reject_request(user_id: str, friendship_id: str) -> None:
    """Recipient declines, or requester cancels, a pending request."""
    with get_session() as session:
        row = _load(session, friendship_id)
        if user_id not in (row.user_id_1, row.user_id_2):
            raise Forbidden("Not your friend request")
        if row.status != "pending":
            raise Conflict(f"Friendship already {row.status}")
        session.delete(row)
        session.commit()


def unfriend(user_id: str, other_id: str) -> None:
    with get_session() as session:
        row = find_between(session, user_id, other_id)
        if not row or row.status != "accepted":
            raise NotFound("Not friends")
        session.delete(row)
        session.commit()
    logger.info({"type": "unfriend", "user_id": user_id, "other_id": other_id})


def block(user_id: str, other_id: str) -> Friendship:
    if user_id == other_id:
        raise InvalidInput("You cannot block yourself")
    with get_session() as session:
        if not session.get(User, other_id):
            raise NotFound("User not found")
        row = find_between(session, user_id, other_id)
        if row is None:
            row = Friendship(user_id_1=user_id, user_id_2=other_id)
        row.status = "blocked"
        row.established_at = None
        session.add(row)
        session.commit()
    logger.info({"type": "block", "user_id": user_id, "other_id": other_id})
    return row


def relationships(user_id: str) -> dict[str, list[Friendship]]:
    """Split the caller's non-blocked rows into friends, incoming and outgoing."""
    with get_session() as session:
        rows = session.exec(
            select(Friendship)
            .where(or_(Friendship.user_id_1 == user_id, Friendship.user_id_2 == user_id))
            .where(Friendship.status != "blocked")
            .order_by(Friendship.created_at.desc())  # type: ignore[attr-defined]
        ).all()
    out: dict[str, list[Friendship]] = {"friends": [], "incoming": [], "outgoing": []}
    for row in rows:
        if row.status == "accepted":
            out["friends"].append(row)
        elif row.user_id_2 == user_id:
            out["incoming"].append(row)
        else:
            out["outgoing"].append(row)
    return out


def statuses_for(user_id: str, other_ids: list[str]) -> dict[str, dict]:
    """Friendship status of the caller with each of other_ids (blocked hidden)."""
    if not other_ids:
        return {}
    with get_session() as session:
        rows = session.exec(
            select(Friendship)
            .where(or_(
                and_(Friendship.user_id_1 == user_id, Friendship.user_id_2.in_(other_ids)),  # type: ignore[attr-defined]
                and_(Friendship.user_id_2 == user_id, Friendship.user_id_1.in_(other_ids)),  # type: ignore[attr-defined]
            ))
            .where(Friendship.status != "blocked")
        ).all()
    out = {}
    for row in rows:
        other = row.user_id_2 if row.user_id_1 == user_id else row.user_id_1
        out[other] = {
            "friendship_id": row.id,
            "status": row.status,
            "is_incoming": row.user_id_2 == user_id and row.status == "pending",
        }
    return out
