from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from match_chat.application.ports.notifier import InsertPublisher
from match_chat.domain.entities.message import Message
from match_chat.infrastructure.db.mappers import message as mapper
from match_chat.infrastructure.db.models.message import MessageModel

logger = logging.getLogger(__name__)


class SqlAlchemyMessageStore:
    """Implements application.ports.store.MessageStore on PostgreSQL.

    ``created_at`` comes from the database clock. Every committed insert is
    handed to the publisher so subscribers of the match see it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: InsertPublisher | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._publisher = publisher

    async def fetch(self, match_id: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.match_id == match_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def insert(self, match_id: str, sender_id: str, content: str) -> Message:
        stmt = (
            pg_insert(MessageModel)
            .values(match_id=match_id, sender_id=sender_id, content=content)
            .returning(MessageModel)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            message = mapper.model_to_entity(result.scalar_one())
            await session.commit()

        if self._publisher is not None:
            try:
                await self._publisher.publish(message)
            except Exception:
                # The row is committed; subscribers catch up on reconciliation.
                logger.exception("Failed to publish insert %s", message.id)
        return message
