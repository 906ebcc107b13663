"""Long-poll loops backing the realtime endpoints.

Clients used to re-query on a fixed timer; these loops run that timer on the
server and hold the request open until something changes or the wait expires.
Database reads go through a worker thread so a held request never blocks the
event loop.
"""
from __future__ import annotations

import asyncio
import time
from typing import Iterable, Optional

from ..settings import settings
from . import messaging, social
from .goals import get_visible_goal


def _deadline(timeout: float) -> float:
    return time.monotonic() + max(0.0, min(timeout, settings.POLL_MAX_WAIT))


async def _sleep_until_next(interval: float, deadline: float) -> bool:
    """Sleep one interval (clipped to the deadline). False once time is up."""
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        return False
    await asyncio.sleep(min(interval, remaining))
    return True


async def poll_messages(user_id: str, conversation_id: str, since: Optional[str],
                        timeout: float) -> dict:
    """Wait for messages newer than `since`.

    Without a cursor the call returns immediately with the current latest
    timestamp so the client has something to poll from.
    """
    if not since:
        last = await asyncio.to_thread(messaging.latest_message, user_id, conversation_id)
        return {"messages": [], "latest": last.created_at if last else None}
    deadline = _deadline(timeout)
    while True:
        found = await asyncio.to_thread(messaging.messages_since, user_id, conversation_id, since)
        if found:
            return {"messages": found, "latest": found[-1]["created_at"]}
        if not await _sleep_until_next(settings.MESSAGE_POLL_INTERVAL, deadline):
            return {"messages": [], "latest": since}


async def poll_comments(user_id: str, goal_id: str, known: Iterable[str], timeout: float) -> dict:
    await asyncio.to_thread(get_visible_goal, goal_id, user_id)
    known = set(known)
    deadline = _deadline(timeout)
    while True:
        diff = await asyncio.to_thread(social.comment_diff, goal_id, known)
        if diff is not None:
            return diff
        if not await _sleep_until_next(settings.COMMENT_POLL_INTERVAL, deadline):
            return {"added": [], "removed": [], "comments": None}
