from __future__ import annotations

import logging
from typing import Iterator

from match_chat.application.dto.principal import Principal
from match_chat.application.ports.clock import Clock
from match_chat.application.ports.notifier import ChangeNotifier
from match_chat.application.ports.store import KeyValueStore, MessageStore
from match_chat.infrastructure.auth.identity import StaticIdentityProvider
from match_chat.infrastructure.kv.memory import ScopedKeyValueStore
from match_chat.services.sync_engine import ConversationSyncEngine

logger = logging.getLogger(__name__)


class EngineRegistry:
    """One ConversationSyncEngine per signed-in recruiter."""

    def __init__(
        self,
        store: MessageStore,
        notifier: ChangeNotifier,
        kv: KeyValueStore,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._kv = kv
        self._clock = clock
        self._engines: dict[str, ConversationSyncEngine] = {}
        self._idle_last_sweep: set[str] = set()

    def get(self, principal: Principal) -> ConversationSyncEngine:
        engine = self._engines.get(principal.user_id)
        if engine is None:
            engine = ConversationSyncEngine(
                StaticIdentityProvider(principal),
                self._store,
                self._notifier,
                ScopedKeyValueStore(self._kv, f"user:{principal.user_id}"),
                self._clock,
            )
            self._engines[principal.user_id] = engine
            logger.debug("Created sync engine for user=%s", principal.user_id)
        return engine

    def evict_idle(self) -> list[str]:
        """Drop engines that were idle on this sweep and on the previous one.

        Requiring two sweeps leaves a request that just fetched an engine
        time to open something on it before it can be dropped.
        """
        idle_now = {uid for uid, engine in self._engines.items() if engine.idle}
        evicted = sorted(idle_now & self._idle_last_sweep)
        for user_id in evicted:
            del self._engines[user_id]
            logger.debug("Evicted idle sync engine for user=%s", user_id)
        self._idle_last_sweep = idle_now - set(evicted)
        return evicted

    def __len__(self) -> int:
        return len(self._engines)

    def __iter__(self) -> Iterator[ConversationSyncEngine]:
        return iter(list(self._engines.values()))

    async def aclose(self) -> None:
        for engine in self:
            await engine.aclose()
        self._engines.clear()
        self._idle_last_sweep.clear()
