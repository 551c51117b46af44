"""
tests/test_staff.py — Staff Roster & Session Opening
====================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from warden.database.models import Account, StaffMember, StaffRole
from warden.database.seed import seed_staff
from warden.errors import AuthenticationError, NotFoundError
from warden.services import audit_service, sanction_service, staff_service


@pytest.fixture
def engine(db_engine):
    return db_engine


class TestStaffSession:

    def test_token_carries_roster_role(self, engine, issuer, make_staff):
        staff, _ = make_staff(engine, "moderator", name="Vex")
        token, member = staff_service.open_staff_session(engine, issuer, staff.account_id)

        principal = issuer.validate(token, "staff")
        assert principal.staff_id == staff.id
        assert principal.role is StaffRole.MODERATOR
        assert principal.level == 2
        assert member.is_on_duty
        assert member.last_action_at is not None

    def test_unknown_account(self, engine, issuer):
        with pytest.raises(NotFoundError):
            staff_service.open_staff_session(engine, issuer, 404)

    def test_inactive_staff_refused(self, engine, issuer, make_staff):
        staff, _ = make_staff(engine, "admin", name="Retired", is_active=False)
        with pytest.raises(AuthenticationError):
            staff_service.open_staff_session(engine, issuer, staff.account_id)


class TestPlayerSession:

    def test_opens_and_touches_login_time(self, engine, issuer, make_account):
        account = make_account(engine, "hero")
        token = staff_service.open_player_session(engine, issuer, account.id)
        assert issuer.validate(token, "player").account_id == account.id
        with Session(engine) as session:
            assert session.get(Account, account.id).last_login_at is not None

    def test_banned_account_refused(self, engine, issuer, make_account, game_master):
        account = make_account(engine, "cheater")
        sanction_service.ban_account(engine, game_master, account_id=account.id, reason="aimbot")
        with pytest.raises(AuthenticationError, match="banned"):
            staff_service.open_player_session(engine, issuer, account.id)

    def test_unknown_account(self, engine, issuer):
        with pytest.raises(NotFoundError):
            staff_service.open_player_session(engine, issuer, 404)


class TestRoster:

    def test_duty_toggle_is_audited(self, engine, make_staff):
        staff, principal = make_staff(engine, "helper", name="Pip")
        staff_service.set_on_duty(engine, principal, True)
        member = staff_service.set_on_duty(engine, principal, False)
        assert not member.is_on_duty

        entries = audit_service.list_entries(engine, actor_id=staff.id)
        assert [e.details["after"] for e in entries] == [False, True]
        assert all(e.action_type == "duty_change" for e in entries)

    def test_duty_needs_roster_row(self, engine, helper):
        with pytest.raises(NotFoundError):
            staff_service.set_on_duty(engine, helper, True)

    def test_on_duty_list_highest_role_first(self, engine, make_staff):
        _, h = make_staff(engine, "helper", name="Hana")
        _, o = make_staff(engine, "owner", name="Olu")
        _, g = make_staff(engine, "game_master", name="Gus")
        make_staff(engine, "admin", name="Hidden", is_visible=False, is_on_duty=True)
        make_staff(engine, "moderator", name="Asleep")
        for p in (h, o, g):
            staff_service.set_on_duty(engine, p, True)

        names = [s.staff_name for s in staff_service.list_on_duty(engine)]
        assert names == ["Olu", "Gus", "Hana"]

    def test_staff_info(self, engine, make_staff, make_account):
        staff, _ = make_staff(engine, "game_master", name="Gus")
        info = staff_service.get_staff_info(engine, staff.account_id)
        assert info.staff_id == staff.id
        assert info.level == 3
        assert not info.is_on_duty

        plain = make_account(engine, "nobody")
        assert staff_service.get_staff_info(engine, plain.id) is None


class TestSeedStaff:

    def test_grant_then_promote(self, engine, make_account):
        account = make_account(engine, "boss")
        first = seed_staff(engine, account.id, "moderator", "Boss")
        second = seed_staff(engine, account.id, StaffRole.OWNER, "Boss")
        assert first.id == second.id
        with Session(engine) as session:
            rows = session.scalars(select(StaffMember)).all()
        assert [(r.role, r.staff_name) for r in rows] == [("owner", "Boss")]

    def test_reactivates_retired_staff(self, engine, make_staff):
        staff, _ = make_staff(engine, "helper", name="Back", is_active=False)
        assert seed_staff(engine, staff.account_id, "helper", "Back").is_active

    def test_unknown_role(self, engine, make_account):
        account = make_account(engine, "boss")
        with pytest.raises(ValueError):
            seed_staff(engine, account.id, "emperor", "Boss")

    def test_unknown_account(self, engine):
        with pytest.raises(NotFoundError):
            seed_staff(engine, 999, "helper", "Ghost")

