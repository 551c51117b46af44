"""Add announcements

Revision ID: 3f8a1c6e2d57
Revises: 7c2e9d41a0b3
Create Date: 2026-10-19 14:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f8a1c6e2d57"
down_revision: str | Sequence[str] | None = "7c2e9d41a0b3"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "announcements",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("server_id", sa.Integer(), nullable=True),
        sa.Column(
            "announcement_type", sa.String(20), nullable=False, server_default="global"
        ),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("show_in_chat", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_as_popup", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_in_ticker", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("color", sa.String(20), nullable=False, server_default="#FFFFFF"),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("created_by", sa.BigInteger(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_announcements_active_window",
        "announcements",
        ["is_active", "starts_at", "expires_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_announcements_active_window", table_name="announcements")
    op.drop_table("announcements")
