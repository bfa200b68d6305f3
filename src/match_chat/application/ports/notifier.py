from __future__ import annotations

from typing import Any, Callable, Protocol

from match_chat.domain.entities.message import Message

OnInsert = Callable[[Message], None]


class ChangeNotifier(Protocol):
    """Live insert feed, filtered per match.

    Delivery is at-least-once and not necessarily in creation order. Callbacks
    run on the caller's event loop. ``unsubscribe`` must accept a handle that
    was already released.
    """

    async def subscribe(self, match_id: str, on_insert: OnInsert) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...


class InsertPublisher(Protocol):
    async def publish(self, message: Message) -> None: ...
