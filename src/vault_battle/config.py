"""Application configuration using pydantic-settings."""

import random
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_BATTLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    database_url: str = "postgresql+asyncpg://localhost/vault_battle"

    debug: bool = False

    # Timing
    pvp_poll_interval: float = 1.0  # Seconds between move-log polls
    opponent_turn_delay: float = 2.0  # Pause before the CPU acts

    # Economy
    pp_steal_ratio: float = 0.6  # Share of the steal roll that becomes PP
    vault_pp_cap: int = 1000  # Upper bound for a vault's PP after a payout

    # Randomness (None = nondeterministic)
    rng_seed: int | None = None

    # Boss awakening
    awakening_threshold: float = 0.5
    awakening_opponents: str = "Terra"  # Comma-separated opponent names

    # Move catalog cache lifetime in seconds
    move_catalog_ttl: float = 300.0

    def get_awakening_opponents(self) -> list[str]:
        """Parse awakening opponent names from comma-separated string."""
        return [name.strip() for name in self.awakening_opponents.split(",") if name.strip()]

    def make_rng(self) -> random.Random:
        """Create the single random source a battle draws from."""
        return random.Random(self.rng_seed)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
