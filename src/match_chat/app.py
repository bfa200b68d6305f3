from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from match_chat.api.middleware.request_context import RequestContextMiddleware
from match_chat.api.v1.routers import health, matches, ws
from match_chat.application.exceptions import (
    InvalidArgumentError,
    SendFailedError,
    SubscriptionFailedError,
    UnauthenticatedError,
)
from match_chat.config import settings
from match_chat.infrastructure.bus.redis_pubsub import RedisChangeNotifier, RedisInsertPublisher
from match_chat.infrastructure.db.repositories.message import SqlAlchemyMessageStore
from match_chat.infrastructure.db.session import (
    build_engine,
    build_session_factory,
    create_schema,
)
from match_chat.infrastructure.kv.file_store import JsonFileKeyValueStore
from match_chat.services.engine_registry import EngineRegistry
from match_chat.workers.reconcile_worker import run_reconcile_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    app.state.db_engine = build_engine(settings)
    if settings.DB_CREATE_SCHEMA:
        await create_schema(app.state.db_engine)
    logger.info("Redis and Postgres pools created")

    store = SqlAlchemyMessageStore(
        build_session_factory(app.state.db_engine),
        RedisInsertPublisher(app.state.redis, settings.NOTIFY_CHANNEL_PREFIX),
    )
    registry = EngineRegistry(
        store,
        RedisChangeNotifier(app.state.redis, settings.NOTIFY_CHANNEL_PREFIX),
        JsonFileKeyValueStore(settings.WATERMARK_STORE_PATH),
    )
    app.state.registry = registry

    reconciler = asyncio.create_task(
        run_reconcile_worker(registry, settings.RECONCILE_INTERVAL_SECONDS),
        name="reconcile-worker",
    )

    yield

    reconciler.cancel()
    with suppress(asyncio.CancelledError):
        await reconciler
    await registry.aclose()
    await app.state.redis.aclose()
    await app.state.db_engine.dispose()
    logger.info("Redis and Postgres pools closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Match Chat Sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(matches.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnauthenticatedError)
    async def _unauthenticated(_req: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(InvalidArgumentError)
    async def _invalid(_req: Request, exc: InvalidArgumentError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(SendFailedError)
    async def _send_failed(_req: Request, exc: SendFailedError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(SubscriptionFailedError)
    async def _subscription_failed(_req: Request, exc: SubscriptionFailedError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})
