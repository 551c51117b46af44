"""
tests/test_cli.py — Operator CLI
=================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import inspect

from warden.__main__ import main
from warden.database.models import AuditEntry, StaffRole
from warden.services import staff_service


@pytest.fixture
def engine(db_engine, monkeypatch):
    monkeypatch.setattr("warden.__main__.create_db_engine", lambda: db_engine)
    return db_engine


class TestCheckConfig:

    def test_ok(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("staff_token_ttl_seconds: 900\n")
        assert main(["check-config", "--config", str(path)]) == 0

    def test_missing_file(self, tmp_path):
        assert main(["check-config", "--config", str(tmp_path / "missing.yaml")]) == 1


class TestGrantStaff:

    def test_grant_staff(self, engine, make_account):
        account = make_account(engine, "cli_user")
        assert main(["grant-staff", str(account.id), "admin", "Cli"]) == 0
        assert staff_service.get_staff_info(engine, account.id).role is StaffRole.ADMIN

    def test_unknown_account(self, engine):
        assert main(["grant-staff", "999", "admin", "Cli"]) == 1


class TestInitDb:

    def test_creates_missing_tables(self, engine):
        AuditEntry.__table__.drop(engine)
        assert main(["init-db"]) == 0
        assert inspect(engine).has_table("audit_log")
