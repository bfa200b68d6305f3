"""Reconcile worker: periodically re-fetches every open or tracked match.

Subscriptions can stop delivering without any error; this loop is the
safety net that brings caches and unread counts back in line. Each pass also
evicts engines that have stayed idle.
"""
from __future__ import annotations

import asyncio
import logging

from match_chat.services.engine_registry import EngineRegistry

logger = logging.getLogger(__name__)


async def reconcile_once(registry: EngineRegistry) -> int:
    reconciled = 0
    for engine in registry:
        for match_id in engine.active_matches():
            try:
                await engine.reconcile(match_id)
                reconciled += 1
            except Exception:
                logger.exception("Reconcile failed for match=%s", match_id)
    registry.evict_idle()
    return reconciled


async def run_reconcile_worker(registry: EngineRegistry, interval: float) -> None:
    logger.info("Reconcile worker started (interval=%.1fs)", interval)
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                count = await reconcile_once(registry)
            except Exception:
                logger.exception("Reconcile worker loop error")
            else:
                if count:
                    logger.debug("Reconciled %d matches", count)
    finally:
        logger.info("Reconcile worker stopped")
