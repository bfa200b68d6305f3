from __future__ import annotations

from typing import Protocol

from match_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


class IdentityProvider(Protocol):
    async def current_user(self) -> Principal | None: ...
