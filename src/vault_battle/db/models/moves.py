"""Move catalog override model."""

from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from .move_log import JSONType


class MoveOverride(Base, TimestampMixin):
    """Admin override for a move's display name, values, and status effects.

    `damage` is either a scalar or a legacy {"min": x, "max": y} range.
    Examples:
    - {"value": 12}
    - {"min": 8, "max": 14}
    """

    __tablename__ = "move_overrides"

    move_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    damage: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    healing: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shield_boost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # List of status effect descriptors
    status_effects: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<MoveOverride(move={self.move_name}, name={self.display_name})>"
