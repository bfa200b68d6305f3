"""Live, continuously-updated view over one match's message cache."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, Iterator

from match_chat.domain.entities.message import Message
from match_chat.domain.timeline import MessageTimeline

Snapshot = tuple[Message, ...]


class ConversationView:
    def __init__(self, match_id: str) -> None:
        self.match_id = match_id
        self.timeline = MessageTimeline()
        self._watchers: set[asyncio.Queue[Snapshot | None]] = set()
        self._closed = False

    @property
    def messages(self) -> Snapshot:
        return self.timeline.snapshot()

    @property
    def pending(self) -> Snapshot:
        return self.timeline.pending()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self.timeline)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.timeline)

    def reopen(self) -> None:
        self._closed = False

    def changed(self) -> None:
        """Push the current snapshot to every watcher."""
        snapshot = self.timeline.snapshot()
        for queue in self._watchers:
            queue.put_nowait(snapshot)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._watchers:
            queue.put_nowait(None)

    async def watch(self) -> AsyncIterator[Snapshot]:
        """Yield the current snapshot, then one per change, until closed."""
        if self._closed:
            return
        queue: asyncio.Queue[Snapshot | None] = asyncio.Queue()
        self._watchers.add(queue)
        try:
            yield self.timeline.snapshot()
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    return
                yield snapshot
        finally:
            self._watchers.discard(queue)
