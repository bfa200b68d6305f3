from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from match_chat.api.deps import get_registry, get_verifier
from match_chat.api.v1.schemas.message import MessageResponse
from match_chat.application.dto.principal import Principal
from match_chat.application.exceptions import AppError, SubscriptionFailedError
from match_chat.config import settings
from match_chat.infrastructure.ws.protocol import WsInbound, WsOutbound
from match_chat.services.conversation_view import ConversationView
from match_chat.services.sync_engine import ConversationSyncEngine

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/matches/{match_id}")
async def ws_match(
    websocket: WebSocket,
    match_id: str,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    engine = get_registry(websocket).get(principal)
    await websocket.accept()

    try:
        async with engine.viewing(match_id) as view:
            await _serve(websocket, engine, view)
    except SubscriptionFailedError as exc:
        # History is cached; the client can reconnect to retry the live feed.
        await _send(websocket, WsOutbound.error("subscription_failed", exc.detail))
        await websocket.close(code=1011)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user=%s match=%s", principal.user_id, match_id)


async def _serve(ws: WebSocket, engine: ConversationSyncEngine, view: ConversationView) -> None:
    push_task = asyncio.create_task(
        _push_snapshots(ws, view), name=f"ws-match-{view.match_id}",
    )
    heartbeat_task = asyncio.create_task(_heartbeat(ws))
    try:
        await _read_loop(ws, engine, view.match_id)
    finally:
        await _stop_tasks(push_task, heartbeat_task)


async def _stop_tasks(*tasks: asyncio.Task[None]) -> None:
    """Cancel and reap background tasks so their errors are retrieved."""
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results):
        if isinstance(result, Exception):
            logger.debug("WS task %s ended with %r", task.get_name(), result)


async def _send(ws: WebSocket, payload: WsOutbound) -> None:
    await ws.send_text(payload.model_dump_json())


async def _push_snapshots(ws: WebSocket, view: ConversationView) -> None:
    async for snapshot in view.watch():
        messages = [MessageResponse.from_entity(m).model_dump(mode="json") for m in snapshot]
        await _send(ws, WsOutbound(type="messages", data={"messages": messages}))


async def _heartbeat(ws: WebSocket) -> None:
    try:
        while True:
            await asyncio.sleep(settings.WS_HEARTBEAT_SECONDS)
            await _send(ws, WsOutbound(type="pong"))
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _read_loop(ws: WebSocket, engine: ConversationSyncEngine, match_id: str) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await _send(ws, WsOutbound.error("invalid_payload"))
            continue

        if msg.type == "ping":
            await _send(ws, WsOutbound(type="pong"))

        elif msg.type == "message.send":
            try:
                sent = await engine.send(match_id, str(msg.data.get("content", "")))
            except AppError as exc:
                await _send(ws, WsOutbound.error("send_failed", exc.detail))
                continue
            await _send(
                ws,
                WsOutbound(
                    type="message.sent",
                    data={"message": MessageResponse.from_entity(sent).model_dump(mode="json")},
                ),
            )

        elif msg.type == "mark_read":
            engine.mark_read(match_id)

        else:
            await _send(ws, WsOutbound.error("unknown_type", msg.type))
