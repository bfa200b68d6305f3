"""WebSocket envelope models for the live match view."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # message.send | mark_read | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # messages | message.sent | error | pong
    data: dict[str, Any] = {}

    @classmethod
    def error(cls, code: str, detail: str | None = None) -> WsOutbound:
        data: dict[str, Any] = {"code": code}
        if detail is not None:
            data["detail"] = detail
        return cls(type="error", data=data)
