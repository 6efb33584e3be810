"""Add battle store tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Adds the vaults, move_log_records and move_overrides tables used by the
SQL-backed vault store, PvP move log and move catalog.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ============================================
    # Create vaults table
    # ============================================
    op.create_table(
        "vaults",
        sa.Column("player_id", sa.String(128), primary_key=True),
        sa.Column("current_pp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("shield_strength", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_shield_strength", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("overshield", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vault_health", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("max_vault_health", sa.Integer(), nullable=False, server_default="100"),
        *_timestamps(),
    )

    # ============================================
    # Create move_log_records table
    # ============================================
    op.create_table(
        "move_log_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_id", sa.String(128), nullable=False, index=True),
        sa.Column("actor_id", sa.String(128), nullable=False, index=True),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("payload", JSONB, nullable=False, server_default="{}"),
        sa.Column("processed_by", JSONB, nullable=False, server_default="[]"),
    )

    # ============================================
    # Create move_overrides table
    # ============================================
    op.create_table(
        "move_overrides",
        sa.Column("move_name", sa.String(100), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("damage", JSONB, nullable=False, server_default="{}"),
        sa.Column("healing", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shield_boost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status_effects", JSONB, nullable=False, server_default="[]"),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("move_overrides")
    op.drop_table("move_log_records")
    op.drop_table("vaults")
