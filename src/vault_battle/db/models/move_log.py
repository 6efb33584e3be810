"""Move log model - the shared append-only PvP log."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class MoveLogRecord(Base):
    """One resolved move, appended by the acting client.

    The payload is kept as JSON so a malformed record can still be read and
    acknowledged instead of blocking the log.
    """

    __tablename__ = "move_log_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    actor_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    # Server-assigned ordering key
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Everything else the acting client reported (deltas, stats, log lines...)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    # Consumers that have applied this record - grows monotonically
    processed_by: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<MoveLogRecord(id={self.id}, room={self.room_id}, actor={self.actor_id})>"
