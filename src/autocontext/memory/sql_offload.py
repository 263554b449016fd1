"""
SQL-backed offload store.
"""

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db import OffloadRecord, init_database
from ..models import Message, MessageDecodeError, dumps_messages, loads_messages
from .offload import OffloadError, OffloadStore

logger = structlog.get_logger()


class SQLOffloadStore(OffloadStore):
    """Offload store keeping one row per UUID in the offload_records table."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    @classmethod
    async def from_url(cls, database_url: str) -> "SQLOffloadStore":
        """Create the schema if needed and return a store bound to it."""
        return cls(await init_database(database_url))

    async def offload(self, uuid: str, messages: list[Message]) -> None:
        payload = dumps_messages(messages)
        try:
            async with self.session_maker() as db:
                record = await db.get(OffloadRecord, uuid)
                if record is None:
                    db.add(OffloadRecord(uuid=uuid, payload=payload, message_count=len(messages)))
                else:
                    record.payload = payload
                    record.message_count = len(messages)
                await db.commit()
        except SQLAlchemyError as e:
            raise OffloadError(f"Failed to offload context with UUID: {uuid}") from e
        logger.debug("Offloaded messages to database", uuid=uuid, count=len(messages))

    async def reload(self, uuid: str) -> list[Message]:
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(OffloadRecord.payload).where(OffloadRecord.uuid == uuid)
                )
                payload = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise OffloadError(f"Failed to reload context with UUID: {uuid}") from e

        if payload is None:
            return []
        try:
            return loads_messages(payload)
        except MessageDecodeError as e:
            raise OffloadError(f"Corrupt offload record for UUID: {uuid}: {e}") from e

    async def clear(self, uuid: str) -> None:
        try:
            async with self.session_maker() as db:
                await db.execute(delete(OffloadRecord).where(OffloadRecord.uuid == uuid))
                await db.commit()
        except SQLAlchemyError as e:
            raise OffloadError(f"Failed to clear context with UUID: {uuid}") from e

    async def list_ids(self) -> list[str]:
        try:
            async with self.session_maker() as db:
                result = await db.execute(
                    select(OffloadRecord.uuid).order_by(OffloadRecord.created_at)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise OffloadError("Failed to list offload records") from e

    async def close(self) -> None:
        """Dispose of the engine connection pool."""
        engine = self.session_maker.kw.get("bind")
        if engine is not None:
            await engine.dispose()
