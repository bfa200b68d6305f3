from __future__ import annotations

import itertools
from datetime import datetime

from match_chat.application.exceptions import InvalidArgumentError, SendFailedError
from match_chat.application.ports.store import MessageStore
from match_chat.domain.entities.message import Message
from match_chat.domain.value_objects.ids import TEMP_ID_PREFIX

_temp_seq = itertools.count(1)


def normalize_content(text: str) -> str:
    content = (text or "").strip()
    if not content:
        raise InvalidArgumentError("Message content must not be empty")
    return content


def make_temporary(
    match_id: str,
    sender_id: str,
    content: str,
    now: datetime,
) -> Message:
    """Build the optimistic entry shown before the store acknowledges a send."""
    millis = int(now.timestamp() * 1000)
    return Message(
        id=f"{TEMP_ID_PREFIX}{millis}-{next(_temp_seq)}",
        match_id=match_id,
        sender_id=sender_id,
        content=content,
        created_at=now,
    )


async def deliver(
    store: MessageStore,
    match_id: str,
    sender_id: str,
    content: str,
) -> Message:
    """Write a message to the store. Any store failure surfaces as SendFailedError."""
    try:
        return await store.insert(match_id, sender_id, content)
    except SendFailedError:
        raise
    except Exception as exc:
        raise SendFailedError(f"Message store rejected insert: {exc}") from exc
