"""Ordered, de-duplicated message cache for a single match."""
from __future__ import annotations

import bisect
from typing import Iterator

from match_chat.domain.entities.message import Message


def _sort_key(message: Message):
    return message.created_at


class MessageTimeline:
    """Messages sorted by ``created_at`` ascending.

    Canonical ids are unique. Temporary (optimistic) entries are only ever
    removed explicitly through :meth:`remove`; :meth:`merge` never matches
    them, so a live insert cannot clobber an in-flight send.
    Equal timestamps keep arrival order.
    """

    __slots__ = ("_items", "_canonical_ids")

    def __init__(self, messages: list[Message] | None = None) -> None:
        self._items: list[Message] = []
        self._canonical_ids: set[str] = set()
        for message in messages or ():
            self.merge(message)

    def merge(self, message: Message) -> bool:
        """Insert a server row at its sorted position. Returns False on duplicate."""
        if message.is_temporary:
            raise ValueError(f"cannot merge temporary message {message.id!r}")
        if message.id in self._canonical_ids:
            return False
        bisect.insort_right(self._items, message, key=_sort_key)
        self._canonical_ids.add(message.id)
        return True

    def insert_optimistic(self, message: Message) -> None:
        if not message.is_temporary:
            raise ValueError(f"{message.id!r} is not a temporary id")
        bisect.insort_right(self._items, message, key=_sort_key)

    def remove(self, message_id: str) -> bool:
        for index, message in enumerate(self._items):
            if message.id == message_id:
                del self._items[index]
                self._canonical_ids.discard(message_id)
                return True
        return False

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._items)

    def pending(self) -> tuple[Message, ...]:
        return tuple(m for m in self._items if m.is_temporary)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._items))

    def __contains__(self, message_id: object) -> bool:
        return any(m.id == message_id for m in self._items)
