"""
warden.database.seed — Staff Grant Seeder
==========================================

Bootstraps the staff roster from the command line
(``python -m warden grant-staff``).  There is no in-band way to create the
first staff member, so this is it.

Idempotent: granting a role to an account that already has a staff row
updates the role and name and re-activates it; otherwise a row is inserted.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from warden.database.models import Account, StaffMember, StaffRole
from warden.errors import NotFoundError

logger = logging.getLogger(__name__)


def seed_staff(
    engine: Engine, account_id: int, role: str | StaffRole, staff_name: str
) -> StaffMember:
    """Upsert the staff row for *account_id* with *role*.

    Raises ``ValueError`` for an unknown role and :class:`NotFoundError`
    if the account does not exist.
    """
    role = StaffRole(role)
    session = Session(engine, expire_on_commit=False)
    try:
        if session.get(Account, account_id) is None:
            raise NotFoundError(f"account {account_id} not found")

        staff = session.scalar(
            select(StaffMember).where(StaffMember.account_id == account_id)
        )
        if staff is None:
            staff = StaffMember(account_id=account_id, staff_name=staff_name, role=role.value)
            session.add(staff)
            created = True
        else:
            staff.role = role.value
            staff.staff_name = staff_name
            staff.is_active = True
            created = False
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info(
        "%s staff %s (account %s) as %s.",
        "Granted" if created else "Updated", staff_name, account_id, role.value,
    )
    return staff
