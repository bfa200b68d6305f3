"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from match_chat.application.dto.principal import Principal
from match_chat.application.ports.auth import TokenVerifier
from match_chat.config import settings
from match_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from match_chat.services.engine_registry import EngineRegistry
from match_chat.services.sync_engine import ConversationSyncEngine

_bearer_scheme = HTTPBearer()

_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_registry(request: Request) -> EngineRegistry:
    return request.app.state.registry


RegistryDep = Annotated[EngineRegistry, Depends(get_registry)]


def get_engine(principal: CurrentPrincipal, registry: RegistryDep) -> ConversationSyncEngine:
    return registry.get(principal)


EngineDep = Annotated[ConversationSyncEngine, Depends(get_engine)]
