"""
warden.engine.roles — Staff Role Hierarchy
===========================================

The role → level table and the one function that compares levels.
Services call :func:`require_level` / :func:`require_role` before any
mutation; no other code compares roles or levels.
"""

from __future__ import annotations

from warden.database.models import StaffRole
from warden.errors import AuthorizationError

__all__ = ["ROLE_LEVELS", "role_level", "require_level", "require_role"]

ROLE_LEVELS: dict[StaffRole, int] = {
    StaffRole.HELPER: 1,
    StaffRole.MODERATOR: 2,
    StaffRole.GAME_MASTER: 3,
    StaffRole.ADMIN: 4,
    StaffRole.OWNER: 5,
}


def role_level(role: str | StaffRole | None) -> int:
    """Level for *role*; unknown or missing roles are level 0."""
    if role is None:
        return 0
    try:
        return ROLE_LEVELS[StaffRole(role)]
    except ValueError:
        return 0


def require_level(principal_level: int, min_level: int) -> None:
    """Raise :class:`AuthorizationError` unless ``principal_level >= min_level``."""
    if principal_level < min_level:
        raise AuthorizationError(
            f"requires staff level {min_level}, caller has {principal_level}"
        )


def require_role(principal_level: int, min_role: str | StaffRole) -> None:
    """Gate on the table level of *min_role*.

    An unknown *min_role* is a programming error, not a level-0 gate.
    """
    min_level = role_level(min_role)
    if min_level == 0:
        raise ValueError(f"Unknown staff role: {min_role!r}")
    require_level(principal_level, min_level)
