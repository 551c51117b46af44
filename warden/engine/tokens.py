"""
warden.engine.tokens — Session Tokens & Principals
===================================================

Mints and validates HS256 JWTs for the two principal kinds.

Player token claims::

    {"sub": "<account id>", "iat": ..., "exp": ...}

Staff token claims::

    {"sub": "<staff id>", "staff": true, "staff_role": "moderator",
     "staff_level": 2, "iat": ..., "exp": ...}

Both kinds are signed with the same secret, so the ``staff`` marker is
what separates them: staff validation refuses any token without it, and
player validation refuses any token that has it.  Validation is pure
computation (no DB call) and safe to run from any thread.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import InvalidTokenError

from warden.config import WardenConfig
from warden.database.models import StaffRole
from warden.engine.roles import role_level
from warden.errors import AuthenticationError, ValidationError

__all__ = [
    "PrincipalKind",
    "PlayerPrincipal",
    "StaffPrincipal",
    "TokenIssuer",
    "STAFF_MARKER_CLAIM",
]

logger = logging.getLogger(__name__)

STAFF_MARKER_CLAIM = "staff"
STAFF_ROLE_CLAIM = "staff_role"
STAFF_LEVEL_CLAIM = "staff_level"

# Claims a caller may never set through ``extra_claims``.  The registered
# ones (aud, iss, nbf, jti) are checked by PyJWT on decode and would make
# the token fail validation.
_RESERVED_CLAIMS = frozenset({
    "sub", "iat", "exp", "nbf", "aud", "iss", "jti",
    STAFF_MARKER_CLAIM, STAFF_ROLE_CLAIM, STAFF_LEVEL_CLAIM,
})


class PrincipalKind(enum.StrEnum):
    PLAYER = "player"
    STAFF = "staff"


# ---------------------------------------------------------------------------
# Principals — explicit values threaded through every service call
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PlayerPrincipal:
    """An authenticated player (account)."""

    account_id: int

    @property
    def kind(self) -> PrincipalKind:
        return PrincipalKind.PLAYER


@dataclass(frozen=True, slots=True)
class StaffPrincipal:
    """An authenticated staff member with the role carried by the token."""

    staff_id: int
    role: StaffRole
    level: int

    @property
    def kind(self) -> PrincipalKind:
        return PrincipalKind.STAFF

    @classmethod
    def for_role(cls, staff_id: int, role: str | StaffRole) -> StaffPrincipal:
        """Build a principal whose level comes from the role table."""
        role = StaffRole(role)
        return cls(staff_id=staff_id, role=role, level=role_level(role))


# ---------------------------------------------------------------------------
# TokenIssuer
# ---------------------------------------------------------------------------
class TokenIssuer:
    """Mint and validate signed session tokens.

    Parameters
    ----------
    secret:
        HMAC signing key shared by both principal kinds.
    player_ttl_seconds / staff_ttl_seconds:
        Lifetime baked into ``exp`` at mint time.
    algorithm:
        HMAC algorithm; validation accepts only this one.
    """

    def __init__(
        self,
        secret: str,
        *,
        player_ttl_seconds: int = 86_400,
        staff_ttl_seconds: int = 43_200,
        algorithm: str = "HS256",
    ) -> None:
        if not secret:
            raise ValueError("TokenIssuer requires a non-empty secret")
        self._secret = secret
        self.algorithm = algorithm
        self._ttl = {
            PrincipalKind.PLAYER: timedelta(seconds=player_ttl_seconds),
            PrincipalKind.STAFF: timedelta(seconds=staff_ttl_seconds),
        }

    @classmethod
    def from_config(cls, cfg: WardenConfig, secret: str) -> TokenIssuer:
        return cls(
            secret,
            player_ttl_seconds=cfg.player_token_ttl_seconds,
            staff_ttl_seconds=cfg.staff_token_ttl_seconds,
            algorithm=cfg.jwt_algorithm,
        )

    # -- minting ------------------------------------------------------------

    def mint(
        self,
        principal_id: int,
        kind: str | PrincipalKind,
        extra_claims: dict[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> str:
        """Return a signed token for *principal_id*.

        Staff tokens need ``extra_claims["role"]``; the level is derived
        from the role table, never taken from the caller.  Player tokens
        ignore role information entirely.
        """
        try:
            kind = PrincipalKind(kind)
        except ValueError:
            raise ValidationError(f"unknown principal kind: {kind!r}") from None

        extra = dict(extra_claims or {})
        issued = now or datetime.now(UTC)
        payload: dict[str, Any] = {
            "sub": str(principal_id),
            "iat": issued,
            "exp": issued + self._ttl[kind],
        }

        if kind is PrincipalKind.STAFF:
            role = extra.pop("role", None)
            level = role_level(role)
            if level == 0:
                raise ValidationError(f"staff token needs a known role, got {role!r}")
            payload[STAFF_MARKER_CLAIM] = True
            payload[STAFF_ROLE_CLAIM] = StaffRole(role).value
            payload[STAFF_LEVEL_CLAIM] = level
        else:
            extra.pop("role", None)

        for key, value in extra.items():
            if key not in _RESERVED_CLAIMS:
                payload[key] = value

        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    # -- validation ---------------------------------------------------------

    def validate(
        self, token: str, expected_kind: str | PrincipalKind
    ) -> PlayerPrincipal | StaffPrincipal:
        """Decode *token* and return the principal it names.

        Raises :class:`AuthenticationError` on a bad signature, expiry,
        wrong algorithm, missing claims, or a kind mismatch.
        """
        try:
            expected_kind = PrincipalKind(expected_kind)
        except ValueError:
            raise ValidationError(f"unknown principal kind: {expected_kind!r}") from None

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except InvalidTokenError as exc:
            logger.debug("Token rejected: %s", exc)
            raise AuthenticationError("invalid or expired token") from None

        subject = _parse_subject(claims.get("sub"))
        is_staff = claims.get(STAFF_MARKER_CLAIM) is True

        if expected_kind is PrincipalKind.PLAYER:
            if STAFF_MARKER_CLAIM in claims:
                raise AuthenticationError("not a player token")
            return PlayerPrincipal(account_id=subject)

        # Marker first: role/level claims mean nothing on a non-staff token.
        if not is_staff:
            raise AuthenticationError("not a staff token")

        role_claim = claims.get(STAFF_ROLE_CLAIM)
        level_claim = claims.get(STAFF_LEVEL_CLAIM)
        level = role_level(role_claim)
        if level == 0 or type(level_claim) is not int or level_claim != level:
            raise AuthenticationError("invalid staff claims")
        return StaffPrincipal(staff_id=subject, role=StaffRole(role_claim), level=level)


def _parse_subject(raw: Any) -> int:
    if not isinstance(raw, str):
        raise AuthenticationError("invalid token claims")
    try:
        value = int(raw)
    except ValueError:
        raise AuthenticationError("invalid token claims") from None
    if value <= 0:
        raise AuthenticationError("invalid token claims")
    return value
