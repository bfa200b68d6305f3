from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready once the message store and the notification bus both answer."""
    state = request.app.state
    checks: dict[str, str] = {}

    try:
        async with state.db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["message_store"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["message_store"] = str(exc) or type(exc).__name__

    try:
        await state.redis.ping()
        checks["notifier"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["notifier"] = str(exc) or type(exc).__name__

    registry = getattr(state, "registry", None)
    body = {
        "checks": checks,
        "engines": len(registry) if registry is not None else 0,
    }
    if any(v != "ok" for v in checks.values()):
        return JSONResponse(status_code=503, content={"status": "unavailable", **body})
    return JSONResponse(content={"status": "ready", **body})
