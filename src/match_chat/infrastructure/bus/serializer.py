from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from match_chat.domain.entities.message import Message
from match_chat.domain.value_objects.ids import TEMP_ID_PREFIX

MESSAGE_CREATED = "message.created"


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "match_id": message.match_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "created_at": message.created_at,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    """Decode a published row. Server rows never carry a temporary id."""
    message_id = str(data["id"])
    if message_id.startswith(TEMP_ID_PREFIX):
        raise ValueError(f"published row has a temporary id: {message_id!r}")
    created_at = data["created_at"]
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    return Message(
        id=message_id,
        match_id=str(data["match_id"]),
        sender_id=str(data["sender_id"]),
        content=data["content"],
        created_at=created_at,
    )


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]
