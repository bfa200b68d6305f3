"""In-process change feed for local runs and tests."""
from __future__ import annotations

import itertools
from dataclasses import dataclass

from match_chat.application.exceptions import SubscriptionFailedError
from match_chat.application.ports.notifier import OnInsert
from match_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MemorySubscription:
    id: int
    match_id: str


class InMemoryChangeNotifier:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._subscribers: dict[int, tuple[str, OnInsert]] = {}
        self.fail_subscribe = False

    async def subscribe(self, match_id: str, on_insert: OnInsert) -> MemorySubscription:
        if self.fail_subscribe:
            raise SubscriptionFailedError(f"Channel for match {match_id} rejected")
        handle = MemorySubscription(next(self._ids), match_id)
        self._subscribers[handle.id] = (match_id, on_insert)
        return handle

    async def unsubscribe(self, handle: MemorySubscription) -> None:
        self._subscribers.pop(handle.id, None)

    async def publish(self, message: Message) -> None:
        self.deliver(message)

    def deliver(self, message: Message) -> None:
        """Invoke every callback subscribed to the message's match."""
        for match_id, on_insert in list(self._subscribers.values()):
            if match_id == message.match_id:
                on_insert(message)

    def active(self, match_id: str | None = None) -> list[MemorySubscription]:
        return [
            MemorySubscription(sub_id, m)
            for sub_id, (m, _cb) in self._subscribers.items()
            if match_id is None or m == match_id
        ]
