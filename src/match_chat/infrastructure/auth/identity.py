from __future__ import annotations

from match_chat.application.dto.principal import Principal
from match_chat.application.ports.auth import TokenVerifier


class StaticIdentityProvider:
    """Implements application.ports.auth.IdentityProvider for one session."""

    def __init__(self, principal: Principal | None = None) -> None:
        self.principal = principal

    async def current_user(self) -> Principal | None:
        return self.principal

    async def sign_in(self, verifier: TokenVerifier, token: str) -> Principal:
        self.principal = await verifier.verify(token)
        return self.principal

    def sign_out(self) -> None:
        self.principal = None
