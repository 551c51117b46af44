"""
warden.services.audit_service — Append-Only Audit Log
======================================================

Every privileged action (ban, mute, ticket transition, duty change) leaves
an :class:`~warden.database.models.AuditEntry`.  Writes are best-effort:

  1. Sanction / ticket services call :func:`record` inside their own
     transaction.  The insert runs in a SAVEPOINT; if it fails, only the
     savepoint rolls back, the failure is logged, and the originating
     operation still commits.
  2. Code outside a transaction uses :func:`append`, which opens its own
     session and reports success as a bool.

There is no update or delete path.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from warden.constants import clamp_page
from warden.database.engine import unit_of_work
from warden.database.models import AuditAction, AuditEntry

logger = logging.getLogger(__name__)


def row_to_dict(obj: Any, *fields: str) -> dict | None:
    """Convert a model instance to a JSON-serializable dict.

    With *fields*, only those columns are included.
    """
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        if fields and col.key not in fields:
            continue
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def _build_entry(
    *,
    actor_id: int,
    action: AuditAction | str,
    target_account_id: int | None,
    target_character_id: int | None,
    detail: str,
    extra: dict | None,
) -> AuditEntry:
    details: dict[str, Any] = {"message": detail}
    if extra:
        details.update(extra)
    return AuditEntry(
        actor_id=actor_id,
        action_type=AuditAction(action).value,
        target_account_id=target_account_id,
        target_character_id=target_character_id,
        details=details,
    )


def record(
    session: Session,
    *,
    actor_id: int,
    action: AuditAction | str,
    target_account_id: int | None = None,
    target_character_id: int | None = None,
    detail: str,
    extra: dict | None = None,
) -> AuditEntry | None:
    """Insert an audit entry within the current transaction.

    Returns the flushed entry, or ``None`` if the write failed (already
    logged).  Never raises on persistence errors.
    """
    entry = _build_entry(
        actor_id=actor_id,
        action=action,
        target_account_id=target_account_id,
        target_character_id=target_character_id,
        detail=detail,
        extra=extra,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(entry)
            session.flush()
    except SQLAlchemyError:
        # The SAVEPOINT was rolled back; the outer txn is still alive.
        logger.warning(
            "Audit write failed (actor=%s action=%s); continuing without it",
            actor_id, action, exc_info=True,
        )
        return None
    return entry


def append(
    engine: Engine,
    *,
    actor_id: int,
    action: AuditAction | str,
    target_account_id: int | None = None,
    target_character_id: int | None = None,
    detail: str,
    extra: dict | None = None,
) -> bool:
    """Standalone best-effort append in its own session."""
    entry = _build_entry(
        actor_id=actor_id,
        action=action,
        target_account_id=target_account_id,
        target_character_id=target_character_id,
        detail=detail,
        extra=extra,
    )
    try:
        with Session(engine) as session:
            session.add(entry)
            session.commit()
    except SQLAlchemyError:
        logger.warning(
            "Audit write failed (actor=%s action=%s)", actor_id, action, exc_info=True,
        )
        return False
    return True


def list_entries(
    engine: Engine,
    *,
    actor_id: int | None = None,
    target_account_id: int | None = None,
    target_character_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditEntry]:
    """Newest-first page of audit entries, optionally filtered."""
    limit, offset = clamp_page(limit, offset)
    stmt = select(AuditEntry)
    if actor_id is not None:
        stmt = stmt.where(AuditEntry.actor_id == actor_id)
    if target_account_id is not None:
        stmt = stmt.where(AuditEntry.target_account_id == target_account_id)
    if target_character_id is not None:
        stmt = stmt.where(AuditEntry.target_character_id == target_character_id)
    stmt = stmt.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())

    with unit_of_work(engine, "list audit entries") as session:
        return list(session.scalars(stmt.limit(limit).offset(offset)).all())
