"""Vault service - SQL-backed vault store."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models.vaults import Vault
from ..engine.stores import StoreError, VaultSnapshot, VaultStore

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = frozenset(
    {
        "current_pp",
        "capacity",
        "shield_strength",
        "max_shield_strength",
        "overshield",
        "vault_health",
        "max_vault_health",
    }
)


class SqlVaultStore(VaultStore):
    """Vault store on the `vaults` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def read(self, player_id: str) -> VaultSnapshot:
        try:
            async with self.session_factory() as session:
                vault = await session.get(Vault, player_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read vault {player_id}") from e

        if vault is None:
            raise StoreError(f"Vault not found: {player_id}")
        return self._to_snapshot(vault)

    async def write(self, player_id: str, values: dict[str, int]) -> None:
        unknown = set(values) - WRITABLE_FIELDS
        if unknown:
            raise StoreError(f"Unknown vault fields: {', '.join(sorted(unknown))}")

        try:
            async with self.session_factory() as session:
                vault = await session.get(Vault, player_id)
                if vault is None:
                    vault = Vault(player_id=player_id)
                    session.add(vault)
                for key, value in values.items():
                    setattr(vault, key, value)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write vault {player_id}") from e

        logger.debug("Vault %s updated: %s", player_id, values)

    async def get_or_create(self, player_id: str) -> VaultSnapshot:
        """Read a vault, creating one with default values if missing."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Vault).where(Vault.player_id == player_id))
                vault = result.scalar_one_or_none()
                if vault is None:
                    vault = Vault(player_id=player_id)
                    session.add(vault)
                    await session.commit()
                    await session.refresh(vault)
                return self._to_snapshot(vault)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load vault {player_id}") from e

    @staticmethod
    def _to_snapshot(vault: Vault) -> VaultSnapshot:
        return VaultSnapshot(
            player_id=vault.player_id,
            current_pp=vault.current_pp,
            capacity=vault.capacity,
            shield_strength=vault.shield_strength,
            max_shield_strength=vault.max_shield_strength,
            overshield=vault.overshield,
            vault_health=vault.vault_health,
            max_vault_health=vault.max_vault_health,
        )
