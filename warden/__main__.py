"""
warden.__main__ — Entry point for ``python -m warden``
======================================================

Operator commands:

* ``init-db`` — create any missing tables (dev/test; production uses
  ``alembic upgrade head``).
* ``grant-staff ACCOUNT_ID ROLE NAME`` — give an account a staff role.
* ``check-config`` — load ``config.yaml`` and ``JWT_SECRET`` and report
  problems before the request layer starts.

Run with::

    python -m warden grant-staff 42 game_master Aria
"""

from __future__ import annotations

import argparse
import logging
import sys

from warden.config import load_config, load_jwt_secret
from warden.database.engine import create_db_engine, init_db
from warden.database.models import StaffRole
from warden.database.seed import seed_staff
from warden.errors import WardenError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("warden")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="warden", description=__doc__.splitlines()[1])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create missing tables")

    grant = sub.add_parser("grant-staff", help="grant or update a staff role")
    grant.add_argument("account_id", type=int)
    grant.add_argument("role", choices=[r.value for r in StaffRole])
    grant.add_argument("name")

    check = sub.add_parser("check-config", help="validate config.yaml and JWT_SECRET")
    check.add_argument("--config", default="config.yaml")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "check-config":
        try:
            cfg = load_config(args.config)
            load_jwt_secret()
        except (FileNotFoundError, ValueError, RuntimeError) as exc:
            logger.critical("%s", exc)
            return 1
        logger.info(
            "Config OK — player TTL %ss, staff TTL %ss, %s",
            cfg.player_token_ttl_seconds, cfg.staff_token_ttl_seconds, cfg.jwt_algorithm,
        )
        return 0

    engine = create_db_engine()

    if args.command == "init-db":
        init_db(engine)
        return 0

    try:
        seed_staff(engine, args.account_id, args.role, args.name)
    except WardenError as exc:
        logger.error("grant-staff failed: %s", exc.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
