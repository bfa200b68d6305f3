"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from match_chat.application.dto.principal import Principal
from match_chat.application.ports.clock import FixedClock
from match_chat.domain.entities.message import Message
from match_chat.infrastructure.auth.identity import StaticIdentityProvider
from match_chat.infrastructure.bus.memory import InMemoryChangeNotifier
from match_chat.infrastructure.db.memory import InMemoryMessageStore
from match_chat.infrastructure.kv.memory import InMemoryKeyValueStore
from match_chat.services.sync_engine import ConversationSyncEngine

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

RECRUITER_ID = "recruiter-1"
CANDIDATE_ID = "candidate-7"


def make_message(
    message_id: str,
    *,
    match_id: str = "m1",
    sender_id: str = CANDIDATE_ID,
    content: str = "hello",
    offset: float = 0.0,
) -> Message:
    return Message(
        id=message_id,
        match_id=match_id,
        sender_id=sender_id,
        content=content,
        created_at=T0 + timedelta(seconds=offset),
    )


@dataclass
class ControlledStore:
    """MessageStore whose inserts stay in flight until the test resolves them."""

    rows: dict[str, list[Message]] = field(default_factory=dict)
    inserts: list[tuple[str, str, str]] = field(default_factory=list)
    _pending: asyncio.Future[Message] | None = None

    def add(self, message: Message) -> None:
        self.rows.setdefault(message.match_id, []).append(message)

    async def fetch(self, match_id: str) -> list[Message]:
        return sorted(self.rows.get(match_id, []), key=lambda m: m.created_at)

    async def insert(self, match_id: str, sender_id: str, content: str) -> Message:
        self.inserts.append((match_id, sender_id, content))
        self._pending = asyncio.get_running_loop().create_future()
        try:
            return await self._pending
        finally:
            self._pending = None

    async def wait_for_insert(self) -> None:
        while self._pending is None:
            await asyncio.sleep(0)

    def confirm(self, message: Message) -> None:
        self.add(message)
        assert self._pending is not None
        self._pending.set_result(message)

    def fail(self, exc: Exception) -> None:
        assert self._pending is not None
        self._pending.set_exception(exc)


@pytest.fixture
def recruiter() -> Principal:
    return Principal(user_id=RECRUITER_ID, email="recruiter@example.com")


@pytest.fixture
def identity(recruiter) -> StaticIdentityProvider:
    return StaticIdentityProvider(recruiter)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0 + timedelta(minutes=5))


@pytest.fixture
def notifier() -> InMemoryChangeNotifier:
    return InMemoryChangeNotifier()


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def store(notifier, clock) -> InMemoryMessageStore:
    return InMemoryMessageStore(notifier, clock, echo="none")


@pytest.fixture
def engine(identity, store, notifier, kv, clock) -> ConversationSyncEngine:
    return ConversationSyncEngine(identity, store, notifier, kv, clock)


@pytest.fixture
def controlled_store() -> ControlledStore:
    return ControlledStore()


@pytest.fixture
def controlled_engine(identity, controlled_store, notifier, kv, clock) -> ConversationSyncEngine:
    return ConversationSyncEngine(identity, controlled_store, notifier, kv, clock)
