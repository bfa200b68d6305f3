"""Seed development data: creates the messages table and a sample match chat."""
from __future__ import annotations

import asyncio
import logging
import uuid

from match_chat.api.middleware.request_context import configure_logging
from match_chat.config import settings
from match_chat.infrastructure.db.repositories.message import SqlAlchemyMessageStore
from match_chat.infrastructure.db.session import (
    build_engine,
    build_session_factory,
    create_schema,
)

logger = logging.getLogger(__name__)

RECRUITER_ID = "00000000-0000-0000-0000-000000000001"
CANDIDATE_ID = "00000000-0000-0000-0000-000000000002"


async def seed() -> str:
    engine = build_engine(settings)
    try:
        await create_schema(engine)
        store = SqlAlchemyMessageStore(build_session_factory(engine))

        match_id = str(uuid.uuid4())
        conversation = [
            (RECRUITER_ID, "Hi! Thanks for your interest in the backend role."),
            (CANDIDATE_ID, "Thanks for reaching out, happy to chat."),
            (RECRUITER_ID, "Are you available for a call on Thursday?"),
            (CANDIDATE_ID, "Thursday afternoon works for me."),
        ]
        for sender_id, content in conversation:
            await store.insert(match_id, sender_id, content)
        return match_id
    finally:
        await engine.dispose()


def main() -> None:
    configure_logging()
    match_id = asyncio.run(seed())
    logger.info("Seeded match %s", match_id)


if __name__ == "__main__":
    main()
