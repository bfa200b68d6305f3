from __future__ import annotations

from match_chat.application.ports.store import KeyValueStore


class InMemoryKeyValueStore:
    """Implements application.ports.store.KeyValueStore; lost on restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class ScopedKeyValueStore:
    """Namespaces keys so several users can share one backing store."""

    def __init__(self, backend: KeyValueStore, scope: str) -> None:
        self._backend = backend
        self._prefix = f"{scope}:"

    def get(self, key: str) -> str | None:
        return self._backend.get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        self._backend.set(self._prefix + key, value)
