"""
warden.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- accounts         — Player identity + denormalized ban flag
- staff_members    — Staff role attached one-to-one to an account
- bans             — Account-level sanctions (soft-deactivated on unban)
- mutes            — Character-level, always time-bounded sanctions
- tickets          — Support tickets, forward-only status
- ticket_messages  — Threaded replies; internal ones are staff-only
- announcements    — Staff broadcasts shown to players inside a time window
- audit_log        — Append-only trail of privileged actions

Character ids are owned by the character system; they are stored as plain
integers here with no foreign key.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Timezone-aware current time; the only clock the models use."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Warden ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class StaffRole(enum.StrEnum):
    """Staff roles, lowest authority first.  Levels live in engine.roles."""
    HELPER = "helper"
    MODERATOR = "moderator"
    GAME_MASTER = "game_master"
    ADMIN = "admin"
    OWNER = "owner"


class TicketStatus(enum.StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class SenderKind(enum.StrEnum):
    PLAYER = "player"
    STAFF = "staff"


class AnnouncementType(enum.StrEnum):
    GLOBAL = "global"
    SERVER = "server"
    MAINTENANCE = "maintenance"
    EVENT = "event"


class AuditAction(enum.StrEnum):
    """Categories of privileged actions recorded in audit_log."""
    BAN = "ban"
    UNBAN = "unban"
    MUTE = "mute"
    UNMUTE = "unmute"
    TICKET_ASSIGN = "ticket_assign"
    TICKET_RESOLVE = "ticket_resolve"
    TICKET_CLOSE = "ticket_close"
    DUTY_CHANGE = "duty_change"
    ANNOUNCE = "announce"
    ANNOUNCE_DEACTIVATE = "announce_deactivate"


# ---------------------------------------------------------------------------
# Account — one row per player login identity
# ---------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    # Projection of "has at least one active ban"; rewritten by every ban/unban.
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ban_reason: Mapped[str | None] = mapped_column(Text, default=None)
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    bans: Mapped[list[Ban]] = relationship(back_populates="account")
    staff: Mapped[StaffMember | None] = relationship(back_populates="account", uselist=False)

    def __repr__(self) -> str:
        return f"<Account id={self.id} username={self.username!r} banned={self.is_banned}>"


# ---------------------------------------------------------------------------
# StaffMember — staff role for an account
# ---------------------------------------------------------------------------
class StaffMember(Base):
    __tablename__ = "staff_members"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    staff_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=StaffRole.HELPER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_on_duty: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_action_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    account: Mapped[Account] = relationship(back_populates="staff")

    __table_args__ = (
        Index("ix_staff_members_duty", "is_active", "is_visible", "is_on_duty"),
    )

    def __repr__(self) -> str:
        return f"<StaffMember id={self.id} name={self.staff_name!r} role={self.role}>"


# ---------------------------------------------------------------------------
# Ban — account-level sanction
# ---------------------------------------------------------------------------
class Ban(Base):
    """Account ban.

    ``is_active`` turns false only when a staff member lifts the ban.  A ban
    whose ``expires_at`` has passed stays ``is_active`` but is no longer
    *effective*; see :meth:`is_effective`.
    """
    __tablename__ = "bans"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    ban_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    banned_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )  # None → permanent
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    unbanned_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    unbanned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    unban_reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    account: Mapped[Account] = relationship(back_populates="bans")

    __table_args__ = (
        Index("ix_bans_account_active", "account_id", "is_active"),
        Index("ix_bans_active_created", "is_active", "created_at"),
    )

    def is_effective(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        expires = as_utc(self.expires_at)
        return self.is_active and (expires is None or expires > now)

    def __repr__(self) -> str:
        return f"<Ban id={self.id} account={self.account_id} active={self.is_active}>"


# ---------------------------------------------------------------------------
# Mute — character-level, always time-bounded
# ---------------------------------------------------------------------------
class Mute(Base):
    __tablename__ = "mutes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    character_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mute_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    muted_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    unmuted_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    unmuted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_mutes_character_active", "character_id", "is_active", "expires_at"),
    )

    def is_effective(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.is_active and as_utc(self.expires_at) > now

    def __repr__(self) -> str:
        return f"<Mute id={self.id} character={self.character_id} type={self.mute_type!r}>"


# ---------------------------------------------------------------------------
# Ticket — player support request
# ---------------------------------------------------------------------------
class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    server_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reporter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)  # character id
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    related_character_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TicketStatus.OPEN.value
    )
    assigned_to: Mapped[int | None] = mapped_column(BigInteger, default=None)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    resolution: Mapped[str | None] = mapped_column(Text, default=None)
    resolved_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    closed_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    messages: Mapped[list[TicketMessage]] = relationship(
        back_populates="ticket", order_by="TicketMessage.created_at"
    )

    __table_args__ = (
        Index("ix_tickets_status_created", "status", "created_at"),
        Index("ix_tickets_reporter", "reporter_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket id={self.id} status={self.status} priority={self.priority!r}>"


# ---------------------------------------------------------------------------
# TicketMessage — threaded reply on a ticket
# ---------------------------------------------------------------------------
class TicketMessage(Base):
    __tablename__ = "ticket_messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    sender_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    sender_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    ticket: Mapped[Ticket] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_ticket_messages_ticket_time", "ticket_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TicketMessage id={self.id} ticket={self.ticket_id} "
            f"sender={self.sender_kind}:{self.sender_id} internal={self.is_internal}>"
        )


# ---------------------------------------------------------------------------
# Announcement — staff broadcast with a display window
# ---------------------------------------------------------------------------
class Announcement(Base):
    """Broadcast message.

    Shown while ``is_active`` and ``starts_at <= now <= expires_at`` (no
    ``expires_at`` means open-ended).  ``server_id`` of ``None`` targets
    every server.
    """
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    server_id: Mapped[int | None] = mapped_column(Integer, default=None)
    announcement_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AnnouncementType.GLOBAL.value
    )
    title: Mapped[str | None] = mapped_column(String(200), default=None)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    show_in_chat: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    show_as_popup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    show_in_ticker: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#FFFFFF")
    icon: Mapped[str | None] = mapped_column(String(50), default=None)
    created_by: Mapped[int] = mapped_column(BigInteger, nullable=False)  # staff id
    starts_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_announcements_active_window", "is_active", "starts_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Announcement id={self.id} type={self.announcement_type} "
            f"active={self.is_active}>"
        )


# ---------------------------------------------------------------------------
# AuditEntry — append-only audit trail
# ---------------------------------------------------------------------------
class AuditEntry(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)  # staff id
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    target_account_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    target_character_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_audit_log_actor_time", "actor_id", "created_at"),
        Index("ix_audit_log_account_time", "target_account_id", "created_at"),
        Index("ix_audit_log_character_time", "target_character_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditEntry id={self.id} actor={self.actor_id} action={self.action_type}>"
