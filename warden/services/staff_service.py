"""
warden.services.staff_service — Staff Roster & Session Opening
===============================================================

Turns an already-verified account into a signed session token, and keeps
the on-duty roster.  Credential checking happens upstream; by the time
these functions run, the caller has proven who they are.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, select

from warden.database.engine import unit_of_work
from warden.database.models import Account, AuditAction, StaffMember, StaffRole, utcnow
from warden.engine.roles import role_level
from warden.engine.tokens import PrincipalKind, StaffPrincipal, TokenIssuer
from warden.errors import AuthenticationError, NotFoundError
from warden.services import audit_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StaffInfo:
    """Read-only snapshot of a staff member, safe to hand to other layers."""

    staff_id: int
    account_id: int
    staff_name: str
    role: StaffRole
    level: int
    is_on_duty: bool
    is_visible: bool
    last_action_at: datetime | None

    @classmethod
    def from_row(cls, row: StaffMember) -> StaffInfo:
        return cls(
            staff_id=row.id,
            account_id=row.account_id,
            staff_name=row.staff_name,
            role=StaffRole(row.role),
            level=role_level(row.role),
            is_on_duty=row.is_on_duty,
            is_visible=row.is_visible,
            last_action_at=row.last_action_at,
        )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
def open_staff_session(
    engine: Engine, issuer: TokenIssuer, account_id: int
) -> tuple[str, StaffMember]:
    """Mint a staff token for the staff member attached to *account_id*.

    Opening a session puts the member on duty.
    """
    now = utcnow()
    with unit_of_work(engine, "open staff session") as session:
        staff = session.scalar(
            select(StaffMember).where(StaffMember.account_id == account_id)
        )
        if staff is None:
            raise NotFoundError("staff member not found")
        if not staff.is_active:
            raise AuthenticationError("staff account is inactive")
        staff.is_on_duty = True
        staff.last_action_at = now

    token = issuer.mint(staff.id, PrincipalKind.STAFF, {"role": staff.role})
    logger.info("Staff session opened: %s (%s, %s)", staff.staff_name, staff.id, staff.role)
    return token, staff


def open_player_session(engine: Engine, issuer: TokenIssuer, account_id: int) -> str:
    """Mint a player token unless the account carries the banned flag."""
    with unit_of_work(engine, "open player session") as session:
        account = session.get(Account, account_id)
        if account is None:
            raise NotFoundError("account not found")
        if account.is_banned:
            raise AuthenticationError("account is banned")
        account.last_login_at = utcnow()

    return issuer.mint(account_id, PrincipalKind.PLAYER)


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------
def set_on_duty(engine: Engine, actor: StaffPrincipal, on_duty: bool) -> StaffMember:
    with unit_of_work(engine, "set duty") as session:
        staff = session.get(StaffMember, actor.staff_id)
        if staff is None or not staff.is_active:
            raise NotFoundError("staff member not found")
        before = staff.is_on_duty
        staff.is_on_duty = on_duty
        staff.last_action_at = utcnow()
        session.flush()

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.DUTY_CHANGE,
            target_account_id=staff.account_id,
            detail="On duty" if on_duty else "Off duty",
            extra={"before": before, "after": on_duty},
        )

    logger.info("Staff %s is now %s", actor.staff_id, "on duty" if on_duty else "off duty")
    return staff


def list_on_duty(engine: Engine) -> list[StaffInfo]:
    """Visible, active, on-duty staff; highest role first."""
    stmt = select(StaffMember).where(
        StaffMember.is_active.is_(True),
        StaffMember.is_visible.is_(True),
        StaffMember.is_on_duty.is_(True),
    )
    with unit_of_work(engine, "list on-duty staff") as session:
        rows = session.scalars(stmt).all()
    infos = [StaffInfo.from_row(r) for r in rows]
    infos.sort(key=lambda s: (-s.level, s.staff_name))
    return infos


def get_staff_info(engine: Engine, account_id: int) -> StaffInfo | None:
    with unit_of_work(engine, "get staff info") as session:
        row = session.scalar(
            select(StaffMember).where(
                StaffMember.account_id == account_id,
                StaffMember.is_active.is_(True),
            )
        )
    return StaffInfo.from_row(row) if row is not None else None
