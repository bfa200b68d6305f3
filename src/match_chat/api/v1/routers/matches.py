from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from match_chat.api.deps import EngineDep
from match_chat.api.v1.schemas.message import (
    MessageResponse,
    SendMessageRequest,
    UnreadResponse,
)
from match_chat.application.exceptions import InvalidArgumentError

router = APIRouter(prefix="/api/v1/matches", tags=["matches"])


@router.get("/unread", response_model=UnreadResponse)
async def unread_counts(
    engine: EngineDep,
    match_id: list[str] = Query([]),
) -> UnreadResponse:
    summary = await engine.unread_counts(match_id)
    return UnreadResponse(counts=summary.counts, total=summary.total)


@router.post("/{match_id}/open", response_model=list[MessageResponse])
async def open_match(match_id: str, engine: EngineDep) -> list[MessageResponse]:
    view = await engine.open(match_id)
    return [MessageResponse.from_entity(m) for m in view.messages]


@router.post("/{match_id}/close", status_code=status.HTTP_204_NO_CONTENT)
async def close_match(match_id: str, engine: EngineDep) -> Response:
    await engine.close(match_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{match_id}/messages", response_model=list[MessageResponse])
async def list_messages(match_id: str, engine: EngineDep) -> list[MessageResponse]:
    view = engine.view(match_id)
    if view is None:
        raise InvalidArgumentError(f"Match {match_id} is not open")
    return [MessageResponse.from_entity(m) for m in view.messages]


@router.post(
    "/{match_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    match_id: str,
    body: SendMessageRequest,
    engine: EngineDep,
) -> MessageResponse:
    message = await engine.send(match_id, body.content)
    return MessageResponse.from_entity(message)


@router.post("/{match_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(match_id: str, engine: EngineDep) -> Response:
    engine.mark_read(match_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
