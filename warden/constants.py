"""
warden.constants — Shared Constants
====================================

Single source of truth for operation minimums, ticket vocabulary and
paging limits.  Import from here instead of repeating literals in
services and tests.
"""

from __future__ import annotations

from warden.database.models import StaffRole, TicketStatus

# ---------------------------------------------------------------------------
# Minimum staff role per privileged operation
# ---------------------------------------------------------------------------
MIN_ROLE_TICKETS: StaffRole = StaffRole.HELPER
MIN_ROLE_MUTE: StaffRole = StaffRole.MODERATOR
MIN_ROLE_BAN: StaffRole = StaffRole.GAME_MASTER
MIN_ROLE_ANNOUNCE: StaffRole = StaffRole.ADMIN


# ---------------------------------------------------------------------------
# Ticket workflow
# ---------------------------------------------------------------------------
# Precondition set for each transition; keys are the target status.
TICKET_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.OPEN}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS}),
    TicketStatus.CLOSED: frozenset({
        TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED,
    }),
}

# Ascending sort rank; anything not listed sorts last.
PRIORITY_RANK: dict[str, int] = {
    "critical": 1,
    "high": 2,
    "medium": 3,
}
DEFAULT_PRIORITY_RANK = 4

DEFAULT_TICKET_CATEGORY = "general"
DEFAULT_TICKET_PRIORITY = "medium"
DEFAULT_SERVER_ID = 1


# ---------------------------------------------------------------------------
# Sanctions
# ---------------------------------------------------------------------------
DEFAULT_MUTE_TYPE = "chat"
DEFAULT_UNBAN_REASON = "Unbanned by staff"


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------
DEFAULT_ANNOUNCEMENT_COLOR = "#FFFFFF"


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    """Clamp a caller-supplied page window to sane bounds.

    ``limit`` outside ``1..MAX_PAGE_SIZE`` falls back to
    ``DEFAULT_PAGE_SIZE``; a negative ``offset`` becomes 0.
    """
    if limit <= 0 or limit > MAX_PAGE_SIZE:
        limit = DEFAULT_PAGE_SIZE
    return limit, max(0, offset)
