from __future__ import annotations

from datetime import timezone

from match_chat.domain.entities.message import Message
from match_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    created_at = model.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Message(
        id=model.id,
        match_id=model.match_id,
        sender_id=model.sender_id,
        content=model.content,
        created_at=created_at,
    )
