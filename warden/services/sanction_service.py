"""
warden.services.sanction_service — Bans & Mutes Ledger
=======================================================

Account bans and character mutes.  Every write follows the pattern:
  1. Gate on the caller's role level
  2. Validate the payload
  3. Begin transaction; bans row-lock the account first
  4. Primary write (insert, or conditional UPDATE checked by rowcount)
  5. Recompute the account's aggregate ban flag (bans only)
  6. Audit entry in a SAVEPOINT
  7. Commit

"Is this sanction in force?" is always answered by a live query:
``is_active AND (expires_at IS NULL OR expires_at > now)``.  Nothing is
cached, so an unmute or an expiry takes effect on the very next check.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, exists, func, select, update
from sqlalchemy.orm import Session

from warden.constants import DEFAULT_UNBAN_REASON, MIN_ROLE_BAN, MIN_ROLE_MUTE, clamp_page
from warden.database.engine import unit_of_work
from warden.database.models import Account, AuditAction, Ban, Mute, utcnow
from warden.engine.roles import require_role
from warden.engine.tokens import StaffPrincipal
from warden.errors import NotFoundError
from warden.schemas import BanRequest, MuteRequest, UnbanRequest, validate_payload
from warden.services import audit_service

logger = logging.getLogger(__name__)

_BAN_SNAPSHOT = ("is_active", "unbanned_by", "unbanned_at", "unban_reason")


# ---------------------------------------------------------------------------
# Live predicates
# ---------------------------------------------------------------------------
def _ban_in_force(now: datetime):
    return Ban.is_active.is_(True) & (Ban.expires_at.is_(None) | (Ban.expires_at > now))


def _mute_in_force(now: datetime):
    return Mute.is_active.is_(True) & (Mute.expires_at > now)


# ---------------------------------------------------------------------------
# Aggregate flag
# ---------------------------------------------------------------------------
def _lock_account_stmt(account_id: int):
    return select(Account).where(Account.id == account_id).with_for_update()


def _lock_account(session: Session, account_id: int) -> Account | None:
    """Row-lock the account so ban/unban writes on it run one at a time."""
    return session.scalar(_lock_account_stmt(account_id))


def _refresh_account_ban_flag(session: Session, account_id: int) -> None:
    """Rewrite ``accounts.is_banned`` / ``ban_reason`` from the bans table.

    One UPDATE with correlated subqueries, so the projection is computed
    from whatever active bans exist at statement time, in the same
    transaction as the ban/unban write that triggered it.
    """
    active = (
        select(Ban.id)
        .where(Ban.account_id == account_id, Ban.is_active.is_(True))
    )
    newest_reason = (
        select(Ban.reason)
        .where(Ban.account_id == account_id, Ban.is_active.is_(True))
        .order_by(Ban.created_at.desc(), Ban.id.desc())
        .limit(1)
        .scalar_subquery()
    )
    session.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(
            is_banned=active.exists(),
            ban_reason=newest_reason,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
def ban_account(
    engine: Engine,
    actor: StaffPrincipal,
    *,
    account_id: int,
    reason: str,
    duration_hours: int | None = None,
    ban_type: str | None = None,
) -> Ban:
    """Ban an account.  ``duration_hours`` ≤ 0 or ``None`` means permanent.

    Bans are additive: an account may carry several active bans at once.
    """
    require_role(actor.level, MIN_ROLE_BAN)
    req = validate_payload(
        BanRequest,
        account_id=account_id,
        reason=reason,
        duration_hours=duration_hours,
        ban_type=ban_type,
    )

    now = utcnow()
    expires_at = None
    if req.duration_hours is not None and req.duration_hours > 0:
        expires_at = now + timedelta(hours=req.duration_hours)
    kind = req.ban_type or ("temporary" if expires_at else "permanent")

    with unit_of_work(engine, "ban account") as session:
        if _lock_account(session, req.account_id) is None:
            raise NotFoundError("account not found")

        ban = Ban(
            account_id=req.account_id,
            ban_type=kind,
            reason=req.reason,
            banned_by=actor.staff_id,
            starts_at=now,
            expires_at=expires_at,
            is_active=True,
            created_at=now,
        )
        session.add(ban)
        session.flush()

        _refresh_account_ban_flag(session, req.account_id)

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.BAN,
            target_account_id=req.account_id,
            detail=f"Ban type: {kind}, Reason: {req.reason}",
            extra={"ban_id": ban.id, "expires_at": expires_at.isoformat() if expires_at else None},
        )

    logger.info(
        "Staff %s banned account %s (ban %s, %s)",
        actor.staff_id, req.account_id, ban.id, kind,
    )
    return ban


def unban_account(
    engine: Engine,
    actor: StaffPrincipal,
    *,
    ban_id: int,
    reason: str | None = None,
) -> Ban:
    """Lift one ban.  The account flag clears only if no other active ban remains.

    Raises :class:`NotFoundError` if the ban does not exist or was already
    lifted (the conditional UPDATE touched zero rows).
    """
    require_role(actor.level, MIN_ROLE_BAN)
    req = validate_payload(UnbanRequest, ban_id=ban_id, reason=reason)
    unban_reason = req.reason or DEFAULT_UNBAN_REASON

    with unit_of_work(engine, "unban account") as session:
        ban = session.scalar(select(Ban).where(Ban.id == req.ban_id).with_for_update())
        if ban is None:
            raise NotFoundError("ban not found")
        account_id = ban.account_id
        _lock_account(session, account_id)
        before = audit_service.row_to_dict(ban, *_BAN_SNAPSHOT)

        now = utcnow()
        result = session.execute(
            update(Ban)
            .where(Ban.id == req.ban_id, Ban.is_active.is_(True))
            .values(
                is_active=False,
                unbanned_by=actor.staff_id,
                unbanned_at=now,
                unban_reason=unban_reason,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("ban not found or already inactive")

        _refresh_account_ban_flag(session, account_id)
        ban = session.get(Ban, req.ban_id, populate_existing=True)

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.UNBAN,
            target_account_id=account_id,
            detail=f"Unban reason: {unban_reason}",
            extra={
                "ban_id": req.ban_id,
                "before": before,
                "after": audit_service.row_to_dict(ban, *_BAN_SNAPSHOT),
            },
        )

    logger.info("Staff %s lifted ban %s on account %s", actor.staff_id, req.ban_id, account_id)
    return ban


def is_account_banned(engine: Engine, account_id: int, *, now: datetime | None = None) -> bool:
    """True iff the account has a ban that is active and not yet expired."""
    now = now or utcnow()
    stmt = select(exists().where(Ban.account_id == account_id, _ban_in_force(now)))
    with unit_of_work(engine, "check ban") as session:
        return bool(session.scalar(stmt))


def list_active_bans(engine: Engine, *, limit: int = 50, offset: int = 0) -> list[Ban]:
    """Bans not yet lifted, newest first."""
    limit, offset = clamp_page(limit, offset)
    stmt = (
        select(Ban)
        .where(Ban.is_active.is_(True))
        .order_by(Ban.created_at.desc(), Ban.id.desc())
        .limit(limit)
        .offset(offset)
    )
    with unit_of_work(engine, "list bans") as session:
        return list(session.scalars(stmt).all())


# ---------------------------------------------------------------------------
# Mutes
# ---------------------------------------------------------------------------
def mute_character(
    engine: Engine,
    actor: StaffPrincipal,
    *,
    character_id: int,
    reason: str,
    duration_minutes: int,
    mute_type: str | None = None,
) -> Mute:
    """Mute a character for a strictly positive number of minutes."""
    require_role(actor.level, MIN_ROLE_MUTE)
    data = {
        "character_id": character_id,
        "reason": reason,
        "duration_minutes": duration_minutes,
    }
    if mute_type is not None:
        data["mute_type"] = mute_type
    req = validate_payload(MuteRequest, **data)

    now = utcnow()
    with unit_of_work(engine, "mute character") as session:
        mute = Mute(
            character_id=req.character_id,
            mute_type=req.mute_type,
            reason=req.reason,
            muted_by=actor.staff_id,
            starts_at=now,
            expires_at=now + timedelta(minutes=req.duration_minutes),
            is_active=True,
            created_at=now,
        )
        session.add(mute)
        session.flush()

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.MUTE,
            target_character_id=req.character_id,
            detail=(
                f"Mute type: {req.mute_type}, Duration: {req.duration_minutes} min, "
                f"Reason: {req.reason}"
            ),
            extra={"mute_id": mute.id},
        )

    logger.info(
        "Staff %s muted character %s (%s, %d min)",
        actor.staff_id, req.character_id, req.mute_type, req.duration_minutes,
    )
    return mute


def unmute_character(engine: Engine, actor: StaffPrincipal, *, mute_id: int) -> Mute:
    """Lift a mute now, whatever time it had left."""
    require_role(actor.level, MIN_ROLE_MUTE)

    with unit_of_work(engine, "unmute character") as session:
        character_id = session.scalar(select(Mute.character_id).where(Mute.id == mute_id))
        if character_id is None:
            raise NotFoundError("mute not found")

        result = session.execute(
            update(Mute)
            .where(Mute.id == mute_id, Mute.is_active.is_(True))
            .values(is_active=False, unmuted_by=actor.staff_id, unmuted_at=utcnow())
        )
        if result.rowcount == 0:
            raise NotFoundError("mute not found or already inactive")

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.UNMUTE,
            target_character_id=character_id,
            detail="Unmuted",
            extra={"mute_id": mute_id},
        )
        mute = session.get(Mute, mute_id, populate_existing=True)

    logger.info("Staff %s unmuted character %s (mute %s)", actor.staff_id, character_id, mute_id)
    return mute


def is_muted(
    engine: Engine,
    character_id: int,
    mute_type: str | None = None,
    *,
    now: datetime | None = None,
) -> bool:
    """True iff an effectively-active mute exists (optionally of *mute_type*)."""
    now = now or utcnow()
    cond = exists().where(Mute.character_id == character_id, _mute_in_force(now))
    if mute_type:
        cond = cond.where(Mute.mute_type == mute_type)
    with unit_of_work(engine, "check mute") as session:
        return bool(session.scalar(select(cond)))


def list_active_mutes(
    engine: Engine,
    *,
    limit: int = 50,
    offset: int = 0,
    now: datetime | None = None,
) -> list[Mute]:
    """Mutes currently in force, newest first."""
    limit, offset = clamp_page(limit, offset)
    now = now or utcnow()
    stmt = (
        select(Mute)
        .where(_mute_in_force(now))
        .order_by(Mute.created_at.desc(), Mute.id.desc())
        .limit(limit)
        .offset(offset)
    )
    with unit_of_work(engine, "list mutes") as session:
        return list(session.scalars(stmt).all())


def count_active_mutes(engine: Engine, character_id: int, *, now: datetime | None = None) -> int:
    """Number of mutes in force on one character."""
    now = now or utcnow()
    stmt = (
        select(func.count())
        .select_from(Mute)
        .where(Mute.character_id == character_id, _mute_in_force(now))
    )
    with unit_of_work(engine, "count mutes") as session:
        return session.scalar(stmt) or 0
