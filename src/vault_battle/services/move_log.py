"""Move log service - SQL-backed shared PvP move log."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models.move_log import MoveLogRecord
from ..engine.stores import MoveLogStore, StoreError

logger = logging.getLogger(__name__)

# Keys stored as columns rather than inside the JSON payload
COLUMN_KEYS = ("id", "room_id", "actor_id", "timestamp", "processed_by")


class SqlMoveLogStore(MoveLogStore):
    """Move log on the `move_log_records` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def append(self, room_id: str, record: dict[str, Any]) -> str:
        payload = {k: v for k, v in record.items() if k not in COLUMN_KEYS}
        row = MoveLogRecord(
            room_id=room_id,
            actor_id=str(record.get("actor_id", "")),
            payload=payload,
            processed_by=list(record.get("processed_by") or []),
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
                logger.debug("Move record %s appended in room %s", row.id, room_id)
                return str(row.id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to append move record in room {room_id}") from e

    async def query_unprocessed(self, room_id: str, exclude_actor_id: str, self_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(MoveLogRecord)
            .where(MoveLogRecord.room_id == room_id, MoveLogRecord.actor_id != exclude_actor_id)
            .order_by(MoveLogRecord.timestamp, MoveLogRecord.id)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query move log in room {room_id}") from e

        # processed_by is a JSON list, filtered here to stay portable across backends
        return [self._to_record(row) for row in rows if self_id not in (row.processed_by or [])]

    async def mark_processed(self, room_id: str, record_id: str, self_id: str) -> None:
        try:
            async with self.session_factory() as session:
                row = await session.get(MoveLogRecord, int(record_id))
                if row is None or row.room_id != room_id:
                    raise StoreError(f"Move record not found: {record_id}")
                processed = list(row.processed_by or [])
                if self_id not in processed:
                    # Reassign so the JSON column is flagged dirty
                    row.processed_by = [*processed, self_id]
                    await session.commit()
                    logger.debug("Move record %s processed by %s", record_id, self_id)
        except (SQLAlchemyError, ValueError) as e:
            raise StoreError(f"Failed to mark move record {record_id} processed") from e

    @staticmethod
    def _to_record(row: MoveLogRecord) -> dict[str, Any]:
        return {
            **(row.payload or {}),
            "id": str(row.id),
            "room_id": row.room_id,
            "actor_id": row.actor_id,
            "timestamp": row.timestamp,
            "processed_by": list(row.processed_by or []),
        }
