"""
warden.services.ticket_service — Support Ticket Workflow
=========================================================

Tickets move forward only::

    open ──assign──▶ in_progress ──resolve──▶ resolved
      │                                          │
      └──────────────resolve─────────────────────┘
    open / in_progress / resolved ──close──▶ closed

Each transition is one conditional UPDATE whose WHERE clause carries the
precondition (``status IN (...)``), run against a row locked with
SELECT ... FOR UPDATE.  A missing ticket is NotFound; an UPDATE that
touches zero rows means the move is illegal from the current status
(Conflict).

Message visibility is partitioned: internal notes are written by staff
and never reach a player-facing read.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, case, select, update
from sqlalchemy.orm import Session

from warden.constants import (
    DEFAULT_PRIORITY_RANK,
    DEFAULT_SERVER_ID,
    DEFAULT_TICKET_CATEGORY,
    DEFAULT_TICKET_PRIORITY,
    MIN_ROLE_TICKETS,
    PRIORITY_RANK,
    TICKET_TRANSITIONS,
    clamp_page,
)
from warden.database.engine import unit_of_work
from warden.database.models import (
    AuditAction,
    SenderKind,
    Ticket,
    TicketMessage,
    TicketStatus,
    utcnow,
)
from warden.engine.roles import require_role
from warden.engine.tokens import StaffPrincipal
from warden.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from warden.schemas import TicketCreate, TicketReply, TicketResolution, validate_payload
from warden.services import audit_service

logger = logging.getLogger(__name__)

_TRANSITION_ACTIONS: dict[TicketStatus, AuditAction] = {
    TicketStatus.IN_PROGRESS: AuditAction.TICKET_ASSIGN,
    TicketStatus.RESOLVED: AuditAction.TICKET_RESOLVE,
    TicketStatus.CLOSED: AuditAction.TICKET_CLOSE,
}

_TICKET_SNAPSHOT = ("status", "assigned_to", "resolved_by", "closed_by")


# ---------------------------------------------------------------------------
# Creation & lookup
# ---------------------------------------------------------------------------
def create_ticket(
    engine: Engine,
    *,
    reporter_id: int,
    subject: str,
    description: str,
    category: str = DEFAULT_TICKET_CATEGORY,
    priority: str = DEFAULT_TICKET_PRIORITY,
    server_id: int = DEFAULT_SERVER_ID,
    related_character_id: int | None = None,
) -> Ticket:
    """Open a new ticket on behalf of the reporting character."""
    req = validate_payload(
        TicketCreate,
        reporter_id=reporter_id,
        subject=subject,
        description=description,
        category=category,
        priority=priority,
        server_id=server_id,
        related_character_id=related_character_id,
    )
    now = utcnow()
    with unit_of_work(engine, "create ticket") as session:
        ticket = Ticket(
            server_id=req.server_id,
            reporter_id=req.reporter_id,
            category=req.category,
            priority=req.priority,
            subject=req.subject,
            description=req.description,
            related_character_id=req.related_character_id,
            status=TicketStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )
        session.add(ticket)
        session.flush()

    logger.info(
        "Ticket %s opened by character %s (%s/%s)",
        ticket.id, ticket.reporter_id, ticket.category, ticket.priority,
    )
    return ticket


def get_ticket(engine: Engine, ticket_id: int) -> Ticket:
    """Staff view of a ticket."""
    with unit_of_work(engine, "get ticket") as session:
        ticket = session.get(Ticket, ticket_id)
    if ticket is None:
        raise NotFoundError("ticket not found")
    return ticket


def get_player_ticket(engine: Engine, ticket_id: int, *, reporter_id: int) -> Ticket:
    """Player view; someone else's ticket is indistinguishable from none."""
    with unit_of_work(engine, "get ticket") as session:
        ticket = _owned_ticket(session, ticket_id, reporter_id)
    return ticket


def list_for_reporter(engine: Engine, reporter_id: int) -> list[Ticket]:
    """All tickets filed by one character, newest first."""
    stmt = (
        select(Ticket)
        .where(Ticket.reporter_id == reporter_id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    with unit_of_work(engine, "list player tickets") as session:
        return list(session.scalars(stmt).all())


def list_all(
    engine: Engine,
    *,
    status: str | TicketStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Ticket]:
    """Staff queue: most urgent first, oldest first within a priority."""
    limit, offset = clamp_page(limit, offset)
    rank = case(PRIORITY_RANK, value=Ticket.priority, else_=DEFAULT_PRIORITY_RANK)

    stmt = select(Ticket)
    if status is not None:
        try:
            status = TicketStatus(status)
        except ValueError:
            raise ValidationError(f"unknown ticket status: {status!r}") from None
        stmt = stmt.where(Ticket.status == status.value)
    stmt = (
        stmt.order_by(rank.asc(), Ticket.created_at.asc(), Ticket.id.asc())
        .limit(limit)
        .offset(offset)
    )
    with unit_of_work(engine, "list tickets") as session:
        return list(session.scalars(stmt).all())


def _owned_ticket(session: Session, ticket_id: int, reporter_id: int) -> Ticket:
    ticket = session.get(Ticket, ticket_id)
    if ticket is None or ticket.reporter_id != reporter_id:
        raise NotFoundError("ticket not found")
    return ticket


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
def _transition(
    session: Session,
    actor: StaffPrincipal,
    ticket_id: int,
    target: TicketStatus,
    values: dict,
) -> Ticket:
    """Apply one compare-and-set status change and audit it.

    The ticket row is locked before the UPDATE so the audited "before"
    snapshot is the state the UPDATE saw.  Returns the refreshed ticket.
    """
    allowed = TICKET_TRANSITIONS[target]
    row = session.scalar(select(Ticket).where(Ticket.id == ticket_id).with_for_update())
    if row is None:
        raise NotFoundError("ticket not found")
    before = audit_service.row_to_dict(row, *_TICKET_SNAPSHOT)

    result = session.execute(
        update(Ticket)
        .where(
            Ticket.id == ticket_id,
            Ticket.status.in_([s.value for s in allowed]),
        )
        .values(status=target.value, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning(
            "Ticket %s: %s → %s rejected for staff %s",
            ticket_id, before["status"], target.value, actor.staff_id,
        )
        raise ConflictError(f"ticket is {before['status']}, cannot move to {target.value}")

    ticket = session.get(Ticket, ticket_id, populate_existing=True)
    audit_service.record(
        session,
        actor_id=actor.staff_id,
        action=_TRANSITION_ACTIONS[target],
        target_character_id=ticket.reporter_id,
        detail=f"Ticket {ticket_id}: {before['status']} -> {target.value}",
        extra={
            "ticket_id": ticket_id,
            "before": before,
            "after": audit_service.row_to_dict(ticket, *_TICKET_SNAPSHOT),
        },
    )
    return ticket


def assign(engine: Engine, actor: StaffPrincipal, ticket_id: int) -> Ticket:
    """Claim an open ticket.  Of two concurrent claims exactly one wins."""
    require_role(actor.level, MIN_ROLE_TICKETS)
    with unit_of_work(engine, "assign ticket") as session:
        ticket = _transition(
            session, actor, ticket_id, TicketStatus.IN_PROGRESS,
            {"assigned_to": actor.staff_id, "assigned_at": utcnow()},
        )
    logger.info("Ticket %s assigned to staff %s", ticket_id, actor.staff_id)
    return ticket


def resolve(engine: Engine, actor: StaffPrincipal, ticket_id: int, resolution: str) -> Ticket:
    require_role(actor.level, MIN_ROLE_TICKETS)
    req = validate_payload(TicketResolution, resolution=resolution)
    with unit_of_work(engine, "resolve ticket") as session:
        ticket = _transition(
            session, actor, ticket_id, TicketStatus.RESOLVED,
            {
                "resolution": req.resolution,
                "resolved_by": actor.staff_id,
                "resolved_at": utcnow(),
            },
        )
    logger.info("Ticket %s resolved by staff %s", ticket_id, actor.staff_id)
    return ticket


def close(engine: Engine, actor: StaffPrincipal, ticket_id: int) -> Ticket:
    """Administrative close from any non-terminal status."""
    require_role(actor.level, MIN_ROLE_TICKETS)
    with unit_of_work(engine, "close ticket") as session:
        ticket = _transition(
            session, actor, ticket_id, TicketStatus.CLOSED,
            {"closed_by": actor.staff_id, "closed_at": utcnow()},
        )
    logger.info("Ticket %s closed by staff %s", ticket_id, actor.staff_id)
    return ticket


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
def add_response(
    engine: Engine,
    ticket_id: int,
    *,
    sender_kind: str | SenderKind,
    sender_id: int,
    message: str,
    internal: bool = False,
) -> TicketMessage:
    """Append a message to a ticket's thread.

    A player may only write on their own ticket and never internally.
    """
    try:
        sender_kind = SenderKind(sender_kind)
    except ValueError:
        raise ValidationError(f"unknown sender kind: {sender_kind!r}") from None
    req = validate_payload(TicketReply, message=message, internal=internal)
    if sender_kind is SenderKind.PLAYER and req.internal:
        raise AuthorizationError("players cannot post internal messages")

    now = utcnow()
    with unit_of_work(engine, "add ticket message") as session:
        if sender_kind is SenderKind.PLAYER:
            ticket = _owned_ticket(session, ticket_id, sender_id)
        else:
            ticket = session.get(Ticket, ticket_id)
            if ticket is None:
                raise NotFoundError("ticket not found")

        msg = TicketMessage(
            ticket_id=ticket.id,
            sender_kind=sender_kind.value,
            sender_id=sender_id,
            body=req.message,
            is_internal=req.internal,
            created_at=now,
        )
        session.add(msg)
        ticket.updated_at = now
        session.flush()

    logger.debug("Ticket %s: %s %s replied", ticket_id, sender_kind, sender_id)
    return msg


def list_messages(
    engine: Engine, ticket_id: int, *, include_internal: bool
) -> list[TicketMessage]:
    """Thread in chronological order; internal notes only on request."""
    with unit_of_work(engine, "list ticket messages") as session:
        if session.get(Ticket, ticket_id) is None:
            raise NotFoundError("ticket not found")
        return _messages(session, ticket_id, include_internal)


def list_player_messages(
    engine: Engine, ticket_id: int, *, reporter_id: int
) -> list[TicketMessage]:
    with unit_of_work(engine, "list ticket messages") as session:
        _owned_ticket(session, ticket_id, reporter_id)
        return _messages(session, ticket_id, include_internal=False)


def _messages(session: Session, ticket_id: int, include_internal: bool) -> list[TicketMessage]:
    stmt = select(TicketMessage).where(TicketMessage.ticket_id == ticket_id)
    if not include_internal:
        stmt = stmt.where(TicketMessage.is_internal.is_(False))
    stmt = stmt.order_by(TicketMessage.created_at.asc(), TicketMessage.id.asc())
    return list(session.scalars(stmt).all())
