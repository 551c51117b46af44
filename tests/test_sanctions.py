"""
tests/test_sanctions.py — Bans & Mutes Ledger
==============================================
Service-level tests for sanction_service against in-memory SQLite:
role gates, the aggregate ban flag, live expiry, and audit tolerance.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import exists, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from warden.database.engine import run_db
from warden.database.models import Account, AuditEntry, Ban, Mute, utcnow
from warden.errors import AuthorizationError, NotFoundError, ValidationError
from warden.services import sanction_service


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


@pytest.fixture
def account(engine, make_account):
    return make_account(engine, "griefer")


def _account(engine, account_id: int) -> Account:
    with Session(engine) as session:
        return session.get(Account, account_id)


def _audit_rows(engine) -> list[AuditEntry]:
    with Session(engine) as session:
        return list(session.scalars(select(AuditEntry).order_by(AuditEntry.id)).all())


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
class TestBanAccount:

    def test_permanent_ban_sets_flag(self, engine, account, game_master):
        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="botting",
        )
        assert ban.is_active
        assert ban.expires_at is None
        assert ban.ban_type == "permanent"
        assert ban.banned_by == game_master.staff_id

        row = _account(engine, account.id)
        assert row.is_banned
        assert row.ban_reason == "botting"
        assert sanction_service.is_account_banned(engine, account.id)

    def test_timed_ban_has_expiry(self, engine, account, game_master):
        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="toxicity",
            duration_hours=24,
        )
        assert ban.ban_type == "temporary"
        assert ban.expires_at - ban.starts_at == timedelta(hours=24)

    def test_non_positive_duration_is_permanent(self, engine, account, game_master):
        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="x", duration_hours=0,
        )
        assert ban.expires_at is None

    def test_moderator_cannot_ban(self, engine, account, moderator):
        with pytest.raises(AuthorizationError):
            sanction_service.ban_account(
                engine, moderator, account_id=account.id, reason="botting",
            )
        assert not _account(engine, account.id).is_banned
        with Session(engine) as session:
            assert session.scalar(select(Ban)) is None

    def test_blank_reason_rejected(self, engine, account, game_master):
        with pytest.raises(ValidationError):
            sanction_service.ban_account(engine, game_master, account_id=account.id, reason="  ")

    def test_unknown_account(self, engine, game_master):
        with pytest.raises(NotFoundError):
            sanction_service.ban_account(engine, game_master, account_id=999, reason="x")

    def test_bans_are_additive(self, engine, account, game_master, admin):
        sanction_service.ban_account(engine, game_master, account_id=account.id, reason="first")
        sanction_service.ban_account(engine, admin, account_id=account.id, reason="second")
        bans = sanction_service.list_active_bans(engine)
        assert [b.reason for b in bans] == ["second", "first"]
        assert _account(engine, account.id).ban_reason == "second"

    def test_ban_is_audited(self, engine, account, game_master):
        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="botting",
        )
        (entry,) = _audit_rows(engine)
        assert entry.action_type == "ban"
        assert entry.actor_id == game_master.staff_id
        assert entry.target_account_id == account.id
        assert entry.details["ban_id"] == ban.id
        assert "botting" in entry.details["message"]


class TestUnbanAccount:

    def test_lifting_only_ban_clears_flag(self, engine, account, game_master):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        lifted = sanction_service.unban_account(engine, game_master, ban_id=ban.id)

        assert not lifted.is_active
        assert lifted.unbanned_by == game_master.staff_id
        assert lifted.unban_reason == "Unbanned by staff"
        row = _account(engine, account.id)
        assert not row.is_banned
        assert row.ban_reason is None
        assert not sanction_service.is_account_banned(engine, account.id)

    def test_flag_survives_while_another_ban_is_active(self, engine, account, game_master):
        first = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="first",
        )
        sanction_service.ban_account(engine, game_master, account_id=account.id, reason="second")
        sanction_service.unban_account(engine, game_master, ban_id=first.id, reason="appeal")

        row = _account(engine, account.id)
        assert row.is_banned
        assert row.ban_reason == "second"

    def test_second_unban_is_not_found(self, engine, account, game_master):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        sanction_service.unban_account(engine, game_master, ban_id=ban.id)
        with pytest.raises(NotFoundError):
            sanction_service.unban_account(engine, game_master, ban_id=ban.id)

    def test_missing_ban(self, engine, game_master):
        with pytest.raises(NotFoundError):
            sanction_service.unban_account(engine, game_master, ban_id=12345)

    def test_helper_cannot_unban(self, engine, account, game_master, helper):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        with pytest.raises(AuthorizationError):
            sanction_service.unban_account(engine, helper, ban_id=ban.id)
        assert _account(engine, account.id).is_banned

    def test_lifted_ban_leaves_active_list(self, engine, account, game_master):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        sanction_service.unban_account(engine, game_master, ban_id=ban.id)
        assert sanction_service.list_active_bans(engine) == []

    def test_unban_audit_has_snapshots(self, engine, account, game_master):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        sanction_service.unban_account(engine, game_master, ban_id=ban.id, reason="appeal")

        entry = _audit_rows(engine)[-1]
        assert entry.action_type == "unban"
        assert entry.details["before"]["is_active"] is True
        assert entry.details["before"]["unbanned_by"] is None
        assert entry.details["after"]["is_active"] is False
        assert entry.details["after"]["unbanned_by"] == game_master.staff_id
        assert entry.details["after"]["unban_reason"] == "appeal"
        assert isinstance(entry.details["after"]["unbanned_at"], str)

    def test_writes_lock_the_account_row(self):
        stmt = sanction_service._lock_account_stmt(1)
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert sql.rstrip().endswith("FOR UPDATE")


class TestConcurrentBanUnban:

    def test_flag_matches_active_bans(self, file_engine, make_account, game_master, admin):
        account = make_account(file_engine, "griefer")
        first = sanction_service.ban_account(
            file_engine, game_master, account_id=account.id, reason="first",
        )

        async def race():
            return await asyncio.gather(
                run_db(
                    sanction_service.ban_account, file_engine, admin,
                    account_id=account.id, reason="second",
                ),
                run_db(sanction_service.unban_account, file_engine, game_master, ban_id=first.id),
                return_exceptions=True,
            )

        results = asyncio.run(race())
        assert all(isinstance(r, Ban) for r in results)

        with Session(file_engine) as session:
            flag = session.get(Account, account.id).is_banned
            has_active = session.scalar(
                select(exists().where(Ban.account_id == account.id, Ban.is_active.is_(True)))
            )
        assert flag is True
        assert flag == bool(has_active)
        assert _account(file_engine, account.id).ban_reason == "second"


class TestBanExpiry:

    def test_expired_ban_is_not_in_force(self, engine, account, game_master):
        sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="x", duration_hours=1,
        )
        later = utcnow() + timedelta(hours=2)
        assert sanction_service.is_account_banned(engine, account.id)
        assert not sanction_service.is_account_banned(engine, account.id, now=later)

    def test_ban_row_effectiveness(self, engine, account, game_master):
        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="x", duration_hours=1,
        )
        with Session(engine) as session:
            row = session.get(Ban, ban.id)
        assert row.is_effective()
        assert not row.is_effective(utcnow() + timedelta(hours=2))

        sanction_service.unban_account(engine, game_master, ban_id=ban.id)
        with Session(engine) as session:
            assert not session.get(Ban, ban.id).is_effective()

    def test_permanent_ban_stays_effective(self, engine, account, game_master):
        ban = sanction_service.ban_account(engine, game_master, account_id=account.id, reason="x")
        assert ban.is_effective(utcnow() + timedelta(days=3650))


# ---------------------------------------------------------------------------
# Mutes
# ---------------------------------------------------------------------------
class TestMutes:

    def test_mute_then_check(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=30,
        )
        assert mute.mute_type == "chat"
        assert mute.expires_at - mute.starts_at == timedelta(minutes=30)
        assert sanction_service.is_muted(engine, 77)
        assert sanction_service.is_muted(engine, 77, "chat")
        assert not sanction_service.is_muted(engine, 77, "trade")
        assert not sanction_service.is_muted(engine, 78)

    def test_mute_lapses_without_clearing_flag(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=30,
        )
        later = mute.expires_at + timedelta(seconds=1)
        assert not sanction_service.is_muted(engine, 77, now=later)
        assert sanction_service.list_active_mutes(engine, now=later) == []
        with Session(engine) as session:
            assert session.get(Mute, mute.id).is_active

    def test_mute_row_effectiveness(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=30,
        )
        with Session(engine) as session:
            row = session.get(Mute, mute.id)
        assert row.is_effective()
        assert not row.is_effective(mute.expires_at + timedelta(seconds=1))

        sanction_service.unmute_character(engine, moderator, mute_id=mute.id)
        with Session(engine) as session:
            assert not session.get(Mute, mute.id).is_effective()

    @pytest.mark.parametrize("minutes", [0, -5])
    def test_duration_must_be_positive(self, engine, moderator, minutes):
        with pytest.raises(ValidationError):
            sanction_service.mute_character(
                engine, moderator, character_id=77, reason="spam", duration_minutes=minutes,
            )

    def test_helper_cannot_mute(self, engine, helper):
        with pytest.raises(AuthorizationError):
            sanction_service.mute_character(
                engine, helper, character_id=77, reason="spam", duration_minutes=5,
            )
        assert not sanction_service.is_muted(engine, 77)

    def test_unmute_takes_effect_immediately(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=600,
        )
        lifted = sanction_service.unmute_character(engine, moderator, mute_id=mute.id)
        assert not lifted.is_active
        assert lifted.unmuted_by == moderator.staff_id
        assert not sanction_service.is_muted(engine, 77)

    def test_unmute_twice_is_not_found(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=10,
        )
        sanction_service.unmute_character(engine, moderator, mute_id=mute.id)
        with pytest.raises(NotFoundError):
            sanction_service.unmute_character(engine, moderator, mute_id=mute.id)

    def test_active_mutes_newest_first(self, engine, moderator):
        for cid in (1, 2, 3):
            sanction_service.mute_character(
                engine, moderator, character_id=cid, reason="spam", duration_minutes=10,
            )
        mutes = sanction_service.list_active_mutes(engine)
        assert [m.character_id for m in mutes] == [3, 2, 1]
        assert sanction_service.count_active_mutes(engine, 2) == 1

    def test_mute_and_unmute_audited(self, engine, moderator):
        mute = sanction_service.mute_character(
            engine, moderator, character_id=77, reason="spam", duration_minutes=10,
        )
        sanction_service.unmute_character(engine, moderator, mute_id=mute.id)
        actions = [(e.action_type, e.target_character_id) for e in _audit_rows(engine)]
        assert actions == [("mute", 77), ("unmute", 77)]


# ---------------------------------------------------------------------------
# Paging & audit tolerance
# ---------------------------------------------------------------------------
class TestPaging:

    @pytest.mark.parametrize("limit", [0, -1, 500])
    def test_out_of_range_limit_falls_back(self, engine, account, game_master, limit):
        for i in range(3):
            sanction_service.ban_account(
                engine, game_master, account_id=account.id, reason=f"r{i}",
            )
        assert len(sanction_service.list_active_bans(engine, limit=limit)) == 3

    def test_offset_skips_newest(self, engine, account, game_master):
        for i in range(3):
            sanction_service.ban_account(
                engine, game_master, account_id=account.id, reason=f"r{i}",
            )
        page = sanction_service.list_active_bans(engine, limit=1, offset=1)
        assert [b.reason for b in page] == ["r1"]


class TestAuditFailure:

    def test_ban_commits_when_audit_write_fails(self, engine, account, game_master, caplog):
        AuditEntry.__table__.drop(engine)

        ban = sanction_service.ban_account(
            engine, game_master, account_id=account.id, reason="botting",
        )

        assert _account(engine, account.id).is_banned
        with Session(engine) as session:
            assert session.get(Ban, ban.id).is_active
        assert "Audit write failed" in caplog.text
