"""Move catalog service - admin overrides with a TTL cache."""

import logging
import time
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import get_settings
from ..db.models.moves import MoveOverride
from ..engine.stores import CatalogEntry, MoveCatalog, StoreError

logger = logging.getLogger(__name__)


class SqlMoveCatalog(MoveCatalog):
    """Move catalog on the `move_overrides` table.

    Lookups are cached per move name for `ttl` seconds, misses included.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_factory = session_factory
        self.ttl = get_settings().move_catalog_ttl if ttl is None else ttl
        self.clock = clock
        self._cache: dict[str, tuple[float, CatalogEntry | None]] = {}

    async def lookup(self, move_name: str) -> CatalogEntry | None:
        cached = self._cache.get(move_name)
        now = self.clock()
        if cached is not None and cached[0] > now:
            return cached[1]

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(MoveOverride).where(MoveOverride.move_name == move_name))
                override = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to look up move {move_name}") from e

        entry = self._to_entry(override) if override is not None else None
        logger.debug("Move catalog %s for %s", "hit" if entry else "miss", move_name)
        self._cache[move_name] = (now + self.ttl, entry)
        return entry

    def invalidate(self, move_name: str | None = None) -> None:
        """Drop one cached move, or the whole cache."""
        if move_name is None:
            self._cache.clear()
        else:
            self._cache.pop(move_name, None)

    @staticmethod
    def _to_entry(override: MoveOverride) -> CatalogEntry:
        return CatalogEntry.from_dict(
            override.move_name,
            {
                "name": override.display_name,
                "description": override.description,
                "damage": override.damage,
                "healing": override.healing,
                "shieldBoost": override.shield_boost,
                "statusEffects": override.status_effects,
            },
        )
