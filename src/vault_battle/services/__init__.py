"""Service layer - SQL-backed stores for the battle engine."""

from .move_catalog import SqlMoveCatalog
from .move_log import SqlMoveLogStore
from .vaults import SqlVaultStore

__all__ = [
    "SqlVaultStore",
    "SqlMoveLogStore",
    "SqlMoveCatalog",
]
