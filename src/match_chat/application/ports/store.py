from __future__ import annotations

from typing import Protocol

from match_chat.domain.entities.message import Message


class MessageStore(Protocol):
    async def fetch(self, match_id: str) -> list[Message]:
        """Full history of a match, ascending by ``created_at``."""
        ...

    async def insert(self, match_id: str, sender_id: str, content: str) -> Message: ...


class KeyValueStore(Protocol):
    """Client-scoped persistent storage (one per device/browser profile)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...
