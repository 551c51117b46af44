"""
warden.services.announcement_service — Staff Broadcasts
========================================================

Admins publish announcements that players see while they are live:
``is_active AND starts_at <= now AND (expires_at IS NULL OR expires_at >= now)``.
Deactivation is a soft flag flip; rows are never deleted.  Both writes
are audited the same way sanctions are.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, select, update

from warden.constants import MIN_ROLE_ANNOUNCE, clamp_page
from warden.database.engine import unit_of_work
from warden.database.models import Announcement, AuditAction, as_utc, utcnow
from warden.engine.roles import require_role
from warden.engine.tokens import StaffPrincipal
from warden.errors import NotFoundError, ValidationError
from warden.schemas import AnnouncementRequest, validate_payload
from warden.services import audit_service

logger = logging.getLogger(__name__)


def _live(now: datetime):
    return (
        Announcement.is_active.is_(True)
        & (Announcement.starts_at <= now)
        & (Announcement.expires_at.is_(None) | (Announcement.expires_at >= now))
    )


def create_announcement(
    engine: Engine,
    actor: StaffPrincipal,
    *,
    message: str,
    announcement_type: str | None = None,
    title: str | None = None,
    server_id: int | None = None,
    show_in_chat: bool = False,
    show_as_popup: bool = False,
    color: str | None = None,
    icon: str | None = None,
    starts_at: datetime | None = None,
    expires_at: datetime | None = None,
) -> Announcement:
    """Publish an announcement.  It goes live at *starts_at* (default: now)."""
    require_role(actor.level, MIN_ROLE_ANNOUNCE)
    data = {
        "message": message,
        "title": title,
        "server_id": server_id,
        "show_in_chat": show_in_chat,
        "show_as_popup": show_as_popup,
        "icon": icon,
        "starts_at": starts_at,
        "expires_at": expires_at,
    }
    if announcement_type is not None:
        data["announcement_type"] = announcement_type
    if color is not None:
        data["color"] = color
    req = validate_payload(AnnouncementRequest, **data)

    now = utcnow()
    starts = as_utc(req.starts_at) or now
    expires = as_utc(req.expires_at)
    if expires is not None and expires <= starts:
        raise ValidationError("invalid expires_at: must be after starts_at")

    with unit_of_work(engine, "create announcement") as session:
        announcement = Announcement(
            server_id=req.server_id,
            announcement_type=req.announcement_type.value,
            title=req.title,
            message=req.message,
            show_in_chat=req.show_in_chat,
            show_as_popup=req.show_as_popup,
            show_in_ticker=True,
            color=req.color,
            icon=req.icon,
            created_by=actor.staff_id,
            starts_at=starts,
            expires_at=expires,
            is_active=True,
            created_at=now,
        )
        session.add(announcement)
        session.flush()

        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.ANNOUNCE,
            detail=f"Type: {req.announcement_type.value}, Title: {req.title or ''}",
            extra={"announcement_id": announcement.id},
        )

    logger.info(
        "Staff %s published announcement %s (%s)",
        actor.staff_id, announcement.id, announcement.announcement_type,
    )
    return announcement


def list_active_announcements(
    engine: Engine,
    *,
    server_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
    now: datetime | None = None,
) -> list[Announcement]:
    """Live announcements, newest first.

    With *server_id*, only those targeting that server or every server.
    """
    limit, offset = clamp_page(limit, offset)
    now = now or utcnow()
    stmt = select(Announcement).where(_live(now))
    if server_id is not None:
        stmt = stmt.where(
            Announcement.server_id.is_(None) | (Announcement.server_id == server_id)
        )
    stmt = (
        stmt.order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .limit(limit)
        .offset(offset)
    )
    with unit_of_work(engine, "list announcements") as session:
        return list(session.scalars(stmt).all())


def deactivate_announcement(
    engine: Engine, actor: StaffPrincipal, announcement_id: int
) -> Announcement:
    """Take an announcement down.  Already-inactive or missing → NotFound."""
    require_role(actor.level, MIN_ROLE_ANNOUNCE)

    with unit_of_work(engine, "deactivate announcement") as session:
        result = session.execute(
            update(Announcement)
            .where(Announcement.id == announcement_id, Announcement.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("announcement not found or already inactive")

        announcement = session.get(Announcement, announcement_id, populate_existing=True)
        audit_service.record(
            session,
            actor_id=actor.staff_id,
            action=AuditAction.ANNOUNCE_DEACTIVATE,
            detail=f"Announcement {announcement_id} deactivated",
            extra={"announcement_id": announcement_id},
        )

    logger.info("Staff %s deactivated announcement %s", actor.staff_id, announcement_id)
    return announcement
