"""Client-side synchronizer for match conversations.

Keeps per-match message caches and unread counts consistent with a remote
message store using only at-least-once, unordered insert notifications.

Everything runs on a single event loop. Notifier callbacks are plain
functions and never await, so every cache mutation completes before the
next event is processed and no locks are needed.

A match may be viewed by several holders at once (one per socket, plus the
default holder used by plain ``open``/``close`` calls). The view ends only
when the last holder closes it.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, AsyncIterator, Iterable

from match_chat.application.dto.principal import Principal
from match_chat.application.exceptions import (
    InvalidArgumentError,
    SendFailedError,
    SubscriptionFailedError,
    UnauthenticatedError,
)
from match_chat.application.ports.auth import IdentityProvider
from match_chat.application.ports.clock import Clock, SystemClock
from match_chat.application.ports.notifier import ChangeNotifier
from match_chat.application.ports.store import KeyValueStore, MessageStore
from match_chat.domain.entities.message import Message
from match_chat.domain.entities.read_state import UnreadSummary
from match_chat.services import message_service
from match_chat.services.conversation_view import ConversationView
from match_chat.services.read_state_service import ReadWatermarks, count_unread, is_unread

logger = logging.getLogger(__name__)

DEFAULT_VIEWER = "default"


@dataclass
class _MatchState:
    match_id: str
    view: ConversationView
    opened: bool = False
    viewers: set[Hashable] = field(default_factory=set)
    tracked: bool = False
    unread: int = 0
    handle: Any = None
    # Identity of the current subscription; events carrying another token are stale.
    token: object | None = field(default=None, repr=False)

    @property
    def viewing(self) -> bool:
        return bool(self.viewers)

    @property
    def idle(self) -> bool:
        return not self.viewers and not self.tracked


class ConversationSyncEngine:
    def __init__(
        self,
        identity: IdentityProvider,
        store: MessageStore,
        notifier: ChangeNotifier,
        kv: KeyValueStore,
        clock: Clock | None = None,
    ) -> None:
        self._identity = identity
        self._store = store
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._watermarks = ReadWatermarks(kv, self._clock)
        self._matches: dict[str, _MatchState] = {}
        self._user_id: str | None = None

    # -- views -------------------------------------------------------------

    async def open(self, match_id: str, viewer: Hashable = DEFAULT_VIEWER) -> ConversationView:
        """Load a match, subscribe to its inserts and mark it read.

        The latest call wins: any earlier subscription for the match is torn
        down first. If subscribing fails the fetched history is still cached
        and SubscriptionFailedError is raised; calling open again retries.
        Opening twice with the same ``viewer`` counts once.
        """
        await self._require_user()
        state = self._state(match_id)
        state.opened = True
        state.viewers.add(viewer)
        state.view.reopen()

        await self._release(state)
        subscribe_error: SubscriptionFailedError | None = None
        try:
            await self._subscribe(state)
        except SubscriptionFailedError as exc:
            subscribe_error = exc

        history = await self._store.fetch(match_id)
        self._merge_history(state, history)
        if state.viewing:
            self.mark_read(match_id)

        if subscribe_error is not None:
            raise subscribe_error
        return state.view

    async def close(self, match_id: str, viewer: Hashable = DEFAULT_VIEWER) -> None:
        state = self._matches.get(match_id)
        if state is None or viewer not in state.viewers:
            return
        state.viewers.discard(viewer)
        if state.viewing:
            return
        state.view.close()
        if not state.tracked:
            await self._release(state)
            self._forget(state)

    @asynccontextmanager
    async def viewing(self, match_id: str) -> AsyncIterator[ConversationView]:
        """open() on entry, close() on every exit path, as a holder of its own."""
        viewer = object()
        try:
            yield await self.open(match_id, viewer)
        finally:
            await self.close(match_id, viewer)

    def view(self, match_id: str) -> ConversationView | None:
        state = self._matches.get(match_id)
        if state is None or not state.opened:
            return None
        return state.view

    # -- sending -------------------------------------------------------------

    async def send(self, match_id: str, text: str) -> Message:
        principal = await self._require_user()
        content = message_service.normalize_content(text)
        state = self._matches.get(match_id)
        if state is None or not state.viewing:
            raise InvalidArgumentError(f"Match {match_id} is not open")

        temp = message_service.make_temporary(
            match_id, principal.user_id, content, self._clock.now(),
        )
        state.view.timeline.insert_optimistic(temp)
        state.view.changed()

        try:
            confirmed = await message_service.deliver(
                self._store, match_id, principal.user_id, content,
            )
        except BaseException as exc:
            # Cancellation included: the temp row must not outlive its send.
            state.view.timeline.remove(temp.id)
            state.view.changed()
            logger.warning(
                "Send to match=%s did not complete (%s), rolled back %s",
                match_id, type(exc).__name__, temp.id,
            )
            raise

        state.view.timeline.remove(temp.id)
        if not state.view.timeline.merge(confirmed):
            logger.debug("Confirmed message %s already merged from live feed", confirmed.id)
        state.view.changed()
        return confirmed

    # -- read state ----------------------------------------------------------

    def mark_read(self, match_id: str) -> None:
        self._watermarks.mark(match_id)
        state = self._matches.get(match_id)
        if state is not None:
            state.unread = 0

    def watermark(self, match_id: str) -> datetime | None:
        return self._watermarks.get(match_id)

    async def unread_counts(self, match_ids: Iterable[str]) -> UnreadSummary:
        """Track exactly ``match_ids`` for unread badges and return their counts.

        Newly listed matches are counted from the store; matches already
        tracked keep their incrementally maintained count.
        """
        await self._require_user()
        wanted = list(dict.fromkeys(match_ids))
        wanted_set = set(wanted)

        for match_id, state in list(self._matches.items()):
            if state.tracked and match_id not in wanted_set:
                state.tracked = False
                if not state.viewing:
                    await self._release(state)
                    self._forget(state)

        fresh = [self._state(m) for m in wanted if not self._state(m).tracked]
        for state in fresh:
            state.tracked = True
        results = await asyncio.gather(
            *(self._start_tracking(state) for state in fresh),
            return_exceptions=True,
        )

        failed: list[str] = []
        error: BaseException | None = None
        for state, result in zip(fresh, results):
            if isinstance(result, SubscriptionFailedError):
                failed.append(state.match_id)
            elif isinstance(result, BaseException):
                state.tracked = False
                if not state.viewing:
                    await self._release(state)
                    self._forget(state)
                logger.warning("Unread tracking for match=%s failed: %s", state.match_id, result)
                error = error or result
        if error is not None:
            raise error
        if failed:
            raise SubscriptionFailedError(
                f"Live updates unavailable for matches: {', '.join(failed)}"
            )
        return self.summary()

    def summary(self) -> UnreadSummary:
        return UnreadSummary(
            {m: s.unread for m, s in self._matches.items() if s.tracked}
        )

    # -- maintenance ---------------------------------------------------------

    def active_matches(self) -> list[str]:
        return [m for m, s in self._matches.items() if not s.idle]

    @property
    def idle(self) -> bool:
        """True when no match is viewed or tracked."""
        return not self.active_matches()

    async def reconcile(self, match_id: str) -> None:
        """Re-fetch a match to recover inserts a silent subscription missed."""
        state = self._matches.get(match_id)
        if state is None or state.idle:
            return
        principal = await self._require_user()

        if state.token is None:
            try:
                await self._subscribe(state)
            except SubscriptionFailedError:
                logger.warning("Resubscribe for match=%s failed", match_id)

        history = await self._store.fetch(match_id)
        changed = self._merge_history(state, history)
        if state.viewing:
            if changed:
                self.mark_read(match_id)
        elif state.tracked:
            state.unread = count_unread(
                state.view.timeline, principal.user_id, self._watermarks.get(match_id),
            )

    async def aclose(self) -> None:
        for state in list(self._matches.values()):
            state.viewers.clear()
            state.tracked = False
            state.view.close()
            await self._release(state)
            self._forget(state)

    # -- internals -----------------------------------------------------------

    async def _require_user(self) -> Principal:
        principal = await self._identity.current_user()
        if principal is None:
            raise UnauthenticatedError("Authentication required")
        self._user_id = principal.user_id
        return principal

    def _state(self, match_id: str) -> _MatchState:
        state = self._matches.get(match_id)
        if state is None:
            state = _MatchState(match_id=match_id, view=ConversationView(match_id))
            self._matches[match_id] = state
        return state

    def _forget(self, state: _MatchState) -> None:
        # Only drop the entry if it was not replaced meanwhile.
        if self._matches.get(state.match_id) is state:
            del self._matches[state.match_id]

    def _merge_history(self, state: _MatchState, history: list[Message]) -> bool:
        changed = False
        for message in history:
            changed = state.view.timeline.merge(message) or changed
        if changed:
            state.view.changed()
        return changed

    async def _start_tracking(self, state: _MatchState) -> None:
        subscribe_error: SubscriptionFailedError | None = None
        if state.token is None:
            try:
                await self._subscribe(state)
            except SubscriptionFailedError as exc:
                subscribe_error = exc

        history = await self._store.fetch(state.match_id)
        self._merge_history(state, history)
        if state.viewing:
            state.unread = 0
        elif self._user_id is not None:
            state.unread = count_unread(
                state.view.timeline, self._user_id, self._watermarks.get(state.match_id),
            )

        if subscribe_error is not None:
            raise subscribe_error

    async def _subscribe(self, state: _MatchState) -> None:
        token = object()
        state.token = token
        try:
            handle = await self._notifier.subscribe(
                state.match_id, partial(self._on_insert, state.match_id, token),
            )
        except Exception as exc:
            if state.token is token:
                state.token = None
            logger.warning("Subscription for match=%s failed: %s", state.match_id, exc)
            if isinstance(exc, SubscriptionFailedError):
                raise
            raise SubscriptionFailedError(
                f"Could not subscribe to match {state.match_id}: {exc}"
            ) from exc

        if state.token is not token:
            logger.warning("Subscription for match=%s superseded, dropping it", state.match_id)
            await self._notifier.unsubscribe(handle)
            return
        state.handle = handle
        logger.info("Subscribed to match=%s", state.match_id)

    async def _release(self, state: _MatchState) -> None:
        handle = state.handle
        state.handle = None
        state.token = None
        if handle is None:
            return
        try:
            await self._notifier.unsubscribe(handle)
        except Exception:
            logger.exception("Unsubscribe from match=%s failed", state.match_id)
        else:
            logger.info("Unsubscribed from match=%s", state.match_id)

    def _on_insert(self, match_id: str, token: object, message: Message) -> None:
        state = self._matches.get(match_id)
        if state is None or state.token is not token:
            return
        if message.is_temporary:
            logger.warning("Live row %s for match=%s has a temporary id, ignored", message.id, match_id)
            return
        if not state.view.timeline.merge(message):
            logger.debug("Duplicate insert %s for match=%s ignored", message.id, match_id)
            return
        state.view.changed()

        if state.viewing:
            self.mark_read(match_id)
        elif state.tracked and self._user_id is not None and is_unread(
            message, self._user_id, self._watermarks.get(match_id),
        ):
            state.unread += 1
