"""Per-device read watermarks and unread counting."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from match_chat.application.ports.clock import Clock
from match_chat.application.ports.store import KeyValueStore
from match_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)

KEY_PREFIX = "lastReadAt:"


def watermark_key(match_id: str) -> str:
    return f"{KEY_PREFIX}{match_id}"


class ReadWatermarks:
    """Last-read timestamps kept in the client's local key-value store."""

    def __init__(self, kv: KeyValueStore, clock: Clock) -> None:
        self._kv = kv
        self._clock = clock

    def get(self, match_id: str) -> datetime | None:
        raw = self._kv.get(watermark_key(match_id))
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparseable watermark for match=%s: %r", match_id, raw)
            return None

    def mark(self, match_id: str) -> datetime:
        """Advance the watermark to now. Never moves it backwards."""
        now = self._clock.now()
        current = self.get(match_id)
        if current is not None and current > now:
            return current
        self._kv.set(watermark_key(match_id), now.isoformat())
        return now


def is_unread(message: Message, user_id: str, watermark: datetime | None) -> bool:
    if message.sender_id == user_id or message.is_temporary:
        return False
    return watermark is None or message.created_at > watermark


def count_unread(
    messages: Iterable[Message],
    user_id: str,
    watermark: datetime | None,
) -> int:
    return sum(1 for m in messages if is_unread(m, user_id, watermark))
