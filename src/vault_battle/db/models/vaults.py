"""Vault model - a player's persistent PP store."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Vault(Base, TimestampMixin):
    """A player's vault.

    Single-writer per session: only the owning player's client updates it,
    except for PvP attacks which only ever decrement it.
    """

    __tablename__ = "vaults"

    player_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    # PP economy
    current_pp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)

    # Defence
    shield_strength: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_shield_strength: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    overshield: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Defeat pool
    vault_health: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    max_vault_health: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    def __repr__(self) -> str:
        return f"<Vault(player={self.player_id}, pp={self.current_pp}, health={self.vault_health})>"
