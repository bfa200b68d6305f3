from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from match_chat.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    content: str = Field(max_length=4000)


class MessageResponse(BaseModel):
    id: str
    match_id: str
    sender_id: str
    content: str
    created_at: datetime
    pending: bool = False

    model_config = {"from_attributes": True}

    @classmethod
    def from_entity(cls, message: Message) -> MessageResponse:
        return cls(
            id=message.id,
            match_id=message.match_id,
            sender_id=message.sender_id,
            content=message.content,
            created_at=message.created_at,
            pending=message.is_temporary,
        )


class UnreadResponse(BaseModel):
    counts: dict[str, int]
    total: int
