"""Initial moderation schema

Revision ID: 7c2e9d41a0b3
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c2e9d41a0b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create accounts, staff, sanctions, tickets and audit tables."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ban_reason", sa.Text(), nullable=True),
        _ts("last_login_at"),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
    )

    op.create_table(
        "staff_members",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.BigInteger(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        sa.Column("staff_name", sa.String(50), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="helper"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_on_duty", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("last_action_at"),
        _ts("created_at", nullable=False),
    )
    op.create_index(
        "ix_staff_members_duty", "staff_members", ["is_active", "is_visible", "is_on_duty"]
    )

    op.create_table(
        "bans",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.BigInteger(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("ban_type", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("banned_by", sa.BigInteger(), nullable=False),
        _ts("starts_at", nullable=False),
        _ts("expires_at"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("unbanned_by", sa.BigInteger(), nullable=True),
        _ts("unbanned_at"),
        sa.Column("unban_reason", sa.Text(), nullable=True),
        _ts("created_at", nullable=False),
    )
    op.create_index("ix_bans_account_active", "bans", ["account_id", "is_active"])
    op.create_index("ix_bans_active_created", "bans", ["is_active", "created_at"])

    op.create_table(
        "mutes",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("character_id", sa.BigInteger(), nullable=False),
        sa.Column("mute_type", sa.String(20), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("muted_by", sa.BigInteger(), nullable=False),
        _ts("starts_at", nullable=False),
        _ts("expires_at", nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("unmuted_by", sa.BigInteger(), nullable=True),
        _ts("unmuted_at"),
        _ts("created_at", nullable=False),
    )
    op.create_index(
        "ix_mutes_character_active", "mutes", ["character_id", "is_active", "expires_at"]
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("server_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("reporter_id", sa.BigInteger(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("related_character_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("assigned_to", sa.BigInteger(), nullable=True),
        _ts("assigned_at"),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.BigInteger(), nullable=True),
        _ts("resolved_at"),
        sa.Column("closed_by", sa.BigInteger(), nullable=True),
        _ts("closed_at"),
        _ts("created_at", nullable=False),
        _ts("updated_at", nullable=False),
    )
    op.create_index("ix_tickets_status_created", "tickets", ["status", "created_at"])
    op.create_index("ix_tickets_reporter", "tickets", ["reporter_id", "created_at"])

    op.create_table(
        "ticket_messages",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id", sa.BigInteger(),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("sender_kind", sa.String(10), nullable=False),
        sa.Column("sender_id", sa.BigInteger(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("created_at", nullable=False),
    )
    op.create_index(
        "ix_ticket_messages_ticket_time", "ticket_messages", ["ticket_id", "created_at"]
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.BigInteger(), nullable=False),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("target_account_id", sa.BigInteger(), nullable=True),
        sa.Column("target_character_id", sa.BigInteger(), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=True),
        _ts("created_at", nullable=False),
    )
    op.create_index("ix_audit_log_actor_time", "audit_log", ["actor_id", "created_at"])
    op.create_index(
        "ix_audit_log_account_time", "audit_log", ["target_account_id", "created_at"]
    )
    op.create_index(
        "ix_audit_log_character_time", "audit_log", ["target_character_id", "created_at"]
    )


def downgrade() -> None:
    """Drop every moderation table, children first."""
    op.drop_table("audit_log")
    op.drop_table("ticket_messages")
    op.drop_table("tickets")
    op.drop_table("mutes")
    op.drop_table("bans")
    op.drop_table("staff_members")
    op.drop_table("accounts")
