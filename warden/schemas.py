"""
warden.schemas — Request Validation
====================================

Pydantic models for every mutation payload.  Services validate their
arguments through :func:`validate_payload` before touching the database,
so malformed input never costs a round-trip and never leaves partial
writes behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from warden.constants import (
    DEFAULT_ANNOUNCEMENT_COLOR,
    DEFAULT_MUTE_TYPE,
    DEFAULT_SERVER_ID,
    DEFAULT_TICKET_CATEGORY,
    DEFAULT_TICKET_PRIORITY,
)
from warden.database.models import AnnouncementType
from warden.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)


# ---------------------------------------------------------------------------
# Sanctions
# ---------------------------------------------------------------------------
class BanRequest(_Payload):
    account_id: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=2000)
    duration_hours: int | None = None  # None / <= 0 → permanent
    ban_type: str | None = Field(default=None, max_length=20)


class UnbanRequest(_Payload):
    ban_id: int = Field(gt=0)
    reason: str | None = Field(default=None, max_length=2000)


class MuteRequest(_Payload):
    character_id: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=2000)
    duration_minutes: int = Field(gt=0)
    mute_type: str = Field(default=DEFAULT_MUTE_TYPE, min_length=1, max_length=20)


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------
class TicketCreate(_Payload):
    reporter_id: int = Field(gt=0)
    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    category: str = Field(default=DEFAULT_TICKET_CATEGORY, min_length=1, max_length=50)
    priority: str = Field(default=DEFAULT_TICKET_PRIORITY, min_length=1, max_length=20)
    server_id: int = Field(default=DEFAULT_SERVER_ID, gt=0)
    related_character_id: int | None = Field(default=None, gt=0)


class TicketReply(_Payload):
    message: str = Field(min_length=1, max_length=4000)
    internal: bool = False


class TicketResolution(_Payload):
    resolution: str = Field(min_length=1, max_length=4000)



# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------
class AnnouncementRequest(_Payload):
    message: str = Field(min_length=1, max_length=4000)
    announcement_type: AnnouncementType = AnnouncementType.GLOBAL
    title: str | None = Field(default=None, max_length=200)
    server_id: int | None = Field(default=None, gt=0)
    show_in_chat: bool = False
    show_as_popup: bool = False
    color: str = Field(default=DEFAULT_ANNOUNCEMENT_COLOR, min_length=1, max_length=20)
    icon: str | None = Field(default=None, max_length=50)
    starts_at: datetime | None = None
    expires_at: datetime | None = None


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------
def validate_payload(model: type[M], **data: object) -> M:
    """Build *model* from *data*, re-raising failures as ValidationError."""
    try:
        return model(**data)
    except pydantic.ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "payload"
            for err in exc.errors()
        )
        raise ValidationError(f"invalid {fields}") from exc
