"""
warden.config — YAML Configuration Loader
==========================================

**Why this file exists:**
Token lifetimes and signing settings come from ``config.yaml``; the
signing secret itself only ever comes from the environment (``.env`` in
development, loaded with python-dotenv).

Usage::

    from warden.config import load_config, load_jwt_secret

    cfg = load_config()              # reads ./config.yaml by default
    secret = load_jwt_secret()       # validated JWT_SECRET
    print(cfg.staff_token_ttl_seconds)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

_WEAK_SECRETS = frozenset({
    "default-secret-change-me",
    "warden-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

_SUPPORTED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class WardenConfig:
    """Immutable configuration loaded from ``config.yaml``.

    The JWT secret is deliberately not part of this object; see
    :func:`load_jwt_secret`.
    """

    # Session lifetimes
    player_token_ttl_seconds: int = 86_400   # 24h, matches the game client
    staff_token_ttl_seconds: int = 43_200    # 12h shift

    # Signing
    jwt_algorithm: str = "HS256"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> WardenConfig:
    """Read *path* and return a :class:`WardenConfig` instance.

    Keys missing from the file keep their defaults.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a TTL is not a positive integer or the algorithm is unsupported.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = WardenConfig()
    player_ttl = int(raw.get("player_token_ttl_seconds", defaults.player_token_ttl_seconds))
    staff_ttl = int(raw.get("staff_token_ttl_seconds", defaults.staff_token_ttl_seconds))
    algorithm = str(raw.get("jwt_algorithm", defaults.jwt_algorithm)).upper()

    if player_ttl <= 0 or staff_ttl <= 0:
        raise ValueError("Token TTLs must be positive numbers of seconds.")
    if algorithm not in _SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported jwt_algorithm {algorithm!r}; "
            f"expected one of {sorted(_SUPPORTED_ALGORITHMS)}."
        )

    return WardenConfig(
        player_token_ttl_seconds=player_ttl,
        staff_token_ttl_seconds=staff_ttl,
        jwt_algorithm=algorithm,
    )


def load_jwt_secret() -> str:
    """Load and validate ``JWT_SECRET`` from the environment.

    Reads ``.env`` first if present.  Raises RuntimeError if the secret is
    missing, blank, too short (< 32 chars), or a known weak default.
    """
    load_dotenv()
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret
