"""
Warden — Access Control & Moderation Core
==========================================
Session credentials for players and staff, the staff role hierarchy,
the sanctions ledger (account bans, character mutes), the support-ticket
workflow, staff announcements, and the audit trail of privileged actions.

The HTTP layer lives elsewhere; it validates tokens with
:class:`~warden.engine.tokens.TokenIssuer` and hands the resulting
principal to the service functions below.

Package layout::

    warden/
    ├── __main__.py        # Operator CLI: init-db, grant-staff, check-config
    ├── config.py          # YAML + env → typed Python config
    ├── constants.py       # Role minimums, ticket statuses, priority ranks
    ├── errors.py          # WardenError taxonomy surfaced to callers
    ├── schemas.py         # Pydantic request validation
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, sessions, async helper
    │   ├── models.py      # ORM models (accounts, staff, sanctions, tickets, announcements, audit)
    │   └── seed.py        # Staff seeding for dev / first deploy
    ├── engine/
    │   ├── roles.py       # Role table + the single level gate
    │   └── tokens.py      # JWT minting / validation, principal types
    └── services/
        ├── audit_service.py     # Append-only audit log
        ├── sanction_service.py  # Bans + mutes ledger
        ├── ticket_service.py    # Ticket state machine + messages
        ├── announcement_service.py  # Staff broadcasts with a display window
        └── staff_service.py     # Staff / player session opening, duty roster
"""

__version__ = "0.1.0"
