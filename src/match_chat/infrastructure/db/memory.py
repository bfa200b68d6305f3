"""In-memory message store that fans inserts out like the hosted backend."""
from __future__ import annotations

import asyncio
import uuid
from typing import Literal

from match_chat.application.ports.clock import Clock, SystemClock
from match_chat.application.ports.notifier import InsertPublisher
from match_chat.domain.entities.message import Message

EchoMode = Literal["before", "after", "none"]


class InMemoryMessageStore:
    """Implements application.ports.store.MessageStore.

    ``echo`` controls when the live notification for an insert goes out:
    ``"before"`` the insert call returns, ``"after"`` it (scheduled on the
    loop), or not at all.
    """

    def __init__(
        self,
        publisher: InsertPublisher | None = None,
        clock: Clock | None = None,
        *,
        echo: EchoMode = "after",
    ) -> None:
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._messages: dict[str, list[Message]] = {}
        self._echo_tasks: set[asyncio.Task[None]] = set()
        self.echo = echo
        self.fail_next_insert: Exception | None = None
        self.fetch_calls = 0

    def add(self, message: Message) -> Message:
        """Seed a row without notifying subscribers."""
        rows = self._messages.setdefault(message.match_id, [])
        rows.append(message)
        rows.sort(key=lambda m: m.created_at)
        return message

    async def fetch(self, match_id: str) -> list[Message]:
        self.fetch_calls += 1
        return list(self._messages.get(match_id, []))

    async def insert(self, match_id: str, sender_id: str, content: str) -> Message:
        if self.fail_next_insert is not None:
            exc, self.fail_next_insert = self.fail_next_insert, None
            raise exc
        message = self.add(
            Message(
                id=str(uuid.uuid4()),
                match_id=match_id,
                sender_id=sender_id,
                content=content,
                created_at=self._clock.now(),
            )
        )
        if self._publisher is not None:
            if self.echo == "before":
                await self._publisher.publish(message)
            elif self.echo == "after":
                task = asyncio.create_task(self._publisher.publish(message))
                self._echo_tasks.add(task)
                task.add_done_callback(self._echo_tasks.discard)
        return message

    async def drain(self) -> None:
        """Wait for scheduled echoes to be delivered."""
        while self._echo_tasks:
            await asyncio.gather(*list(self._echo_tasks))
