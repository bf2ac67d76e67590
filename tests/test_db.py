"""Tests for src.data.db — HouseholdDB (SQLite storage)."""

import sqlite3

import pytest

from src.core.errors import PersistenceError
from src.data.db import HouseholdDB
from src.data.models import (
    DEFAULT_REMINDER_TEMPLATE,
    AdminUser,
    Contact,
    DeliveryDetail,
    DeliveryMethod,
    DeliveryStatus,
    DispatchStatus,
    Issue,
    IssueStatus,
    LedgerCategory,
    Resident,
    Role,
)


def _resident(rid, name="Jane Doe", flat="4B", **contact):
    return Resident(id=rid, name=name, flat_number=flat, contact=Contact(**contact))


def _log(tx, message, category=LedgerCategory.GENERAL, timestamp="2026-01-01T00:00:00+00:00"):
    return tx.insert_log(
        timestamp=timestamp,
        message=message,
        actor="editor@example.com",
        category=category,
        subject=None,
        status=None,
        details=(),
    )


class TestResidents:
    def test_insert_keeps_order(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_resident(_resident("a", "Alice"))
            tx.insert_resident(_resident("b", "Bob"))
            tx.insert_resident(_resident("c", "Carol"))
        with household_db.transaction() as tx:
            assert [r.name for r in tx.list_residents()] == ["Alice", "Bob", "Carol"]

    def test_order_survives_delete_and_insert(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_resident(_resident("a", "Alice"))
            tx.insert_resident(_resident("b", "Bob"))
            tx.delete_resident("a")
            tx.insert_resident(_resident("c", "Carol"))
            assert [r.id for r in tx.list_residents()] == ["b", "c"]

    def test_contact_round_trip(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_resident(_resident("a", sms="+1555", email="a@example.com"))
            stored = tx.get_resident("a")
        assert stored.contact == Contact(sms="+1555", email="a@example.com")
        assert stored.notes is None

    def test_update(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_resident(_resident("a"))
            resident = tx.get_resident("a")
            resident.name = "Janet Doe"
            resident.contact.whatsapp = "+1666"
            tx.update_resident(resident)
            stored = tx.get_resident("a")
        assert stored.name == "Janet Doe"
        assert stored.contact.whatsapp == "+1666"

    def test_delete_unknown_returns_false(self, household_db):
        with household_db.transaction() as tx:
            assert tx.delete_resident("missing") is False
            assert tx.get_resident("missing") is None


class TestRotation:
    def test_starts_at_zero(self, household_db):
        with household_db.transaction() as tx:
            assert tx.get_rotation_index() == 0

    def test_set_persists(self, household_db):
        with household_db.transaction() as tx:
            tx.set_rotation_index(3)
        with household_db.transaction() as tx:
            assert tx.get_rotation_index() == 3


class TestLogs:
    def test_insert_and_list(self, household_db):
        with household_db.transaction() as tx:
            first = _log(tx, "one")
            second = _log(tx, "two", LedgerCategory.ROTATION)
        assert second.id > first.id
        with household_db.transaction() as tx:
            assert [e.message for e in tx.list_logs()] == ["one", "two"]
            assert [e.message for e in tx.list_logs(newest_first=True)] == ["two", "one"]
            assert [e.message for e in tx.list_logs(categories=[LedgerCategory.ROTATION])] == ["two"]
            assert len(tx.list_logs(limit=1)) == 1

    def test_details_round_trip(self, household_db):
        detail = DeliveryDetail(
            recipient="Jane Doe",
            method=DeliveryMethod.SMS,
            status=DeliveryStatus.FAILED,
            content="Hi Jane",
            error="timed out",
        )
        with household_db.transaction() as tx:
            tx.insert_log(
                timestamp="2026-01-01T00:00:00+00:00",
                message="Reminder sent",
                actor="scheduler",
                category=LedgerCategory.REMINDER,
                subject="Bin duty reminder",
                status=DispatchStatus.FAILED,
                details=[detail],
            )
        with household_db.transaction() as tx:
            (entry,) = tx.list_logs()
        assert entry.details == [detail]
        assert entry.status == DispatchStatus.FAILED
        assert entry.subject == "Bin duty reminder"
        assert entry.actor == "scheduler"

    def test_last_timestamp(self, household_db):
        with household_db.transaction() as tx:
            assert tx.last_log_timestamp() is None
            _log(tx, "one", timestamp="2026-03-01T00:00:00+00:00")
            assert tx.last_log_timestamp() == "2026-03-01T00:00:00+00:00"

    def test_delete_logs(self, household_db):
        with household_db.transaction() as tx:
            a = _log(tx, "a")
            _log(tx, "b")
            assert tx.delete_logs([a.id, 9999]) == 1
            assert [e.message for e in tx.list_logs()] == ["b"]
            assert tx.delete_logs([]) == 0


class TestIssues:
    def _issue(self, iid, timestamp, status=IssueStatus.REPORTED):
        return Issue(
            id=iid,
            reported_by="Jane",
            flat_number="4B",
            description="Broken light",
            status=status,
            timestamp=timestamp,
        )

    def test_newest_first_and_filter(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_issue(self._issue("old", "2026-01-01T00:00:00+00:00"))
            tx.insert_issue(self._issue("new", "2026-02-01T00:00:00+00:00", IssueStatus.RESOLVED))
            assert [i.id for i in tx.list_issues()] == ["new", "old"]
            assert [i.id for i in tx.list_issues(IssueStatus.REPORTED)] == ["old"]

    def test_set_status(self, household_db):
        with household_db.transaction() as tx:
            tx.insert_issue(self._issue("x", "2026-01-01T00:00:00+00:00"))
            tx.set_issue_status("x", IssueStatus.IN_PROGRESS)
            assert tx.get_issue("x").status == IssueStatus.IN_PROGRESS


class TestSettingsAndAdmins:
    def test_settings_seeded(self, household_db):
        with household_db.transaction() as tx:
            current = tx.get_settings()
        assert current.reminder_template == DEFAULT_REMINDER_TEMPLATE

    def test_save_settings(self, household_db):
        with household_db.transaction() as tx:
            current = tx.get_settings()
            current.owner_name = "Pat"
            tx.save_settings(current)
        with household_db.transaction() as tx:
            assert tx.get_settings().owner_name == "Pat"

    def test_admin_email_lookup_ignores_case(self, household_db):
        admin = AdminUser(id="1", email="Owner@Example.com", role=Role.SUPERUSER, created_at="t")
        with household_db.transaction() as tx:
            tx.insert_admin(admin)
            assert tx.find_admin_by_email("owner@example.com").id == "1"

    def test_duplicate_admin_email_is_persistence_error(self, household_db):
        with pytest.raises(PersistenceError):
            with household_db.transaction() as tx:
                tx.insert_admin(AdminUser(id="1", email="a@example.com", role=Role.EDITOR, created_at="t"))
                tx.insert_admin(AdminUser(id="2", email="A@example.com", role=Role.EDITOR, created_at="t"))


class TestTransactions:
    def test_rollback_on_exception(self, household_db):
        with pytest.raises(RuntimeError):
            with household_db.transaction() as tx:
                tx.insert_resident(_resident("a"))
                _log(tx, "added")
                raise RuntimeError("boom")
        with household_db.transaction() as tx:
            assert tx.list_residents() == []
            assert tx.list_logs() == []

    def test_sqlite_error_wrapped(self, household_db):
        with pytest.raises(PersistenceError):
            with household_db.transaction() as tx:
                tx._conn.execute("SELECT * FROM no_such_table")

    def test_data_survives_reopen(self, tmp_db_path):
        db = HouseholdDB(db_path=tmp_db_path)
        with db.transaction() as tx:
            tx.insert_resident(_resident("a"))
        reopened = HouseholdDB(db_path=tmp_db_path)
        with reopened.transaction() as tx:
            assert [r.id for r in tx.list_residents()] == ["a"]


class TestMigration:
    def test_plain_log_table_is_upgraded(self, tmp_db_path):
        conn = sqlite3.connect(tmp_db_path)
        conn.execute(
            "CREATE TABLE logs (id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "timestamp TEXT NOT NULL, message TEXT NOT NULL)"
        )
        conn.execute(
            "INSERT INTO logs (timestamp, message) VALUES (?, ?)",
            ("2025-12-01T08:00:00+00:00", "Reminder sent to Jane"),
        )
        conn.commit()
        conn.close()

        db = HouseholdDB(db_path=tmp_db_path)
        with db.transaction() as tx:
            (entry,) = tx.list_logs()
        assert entry.message == "Reminder sent to Jane"
        assert entry.category == LedgerCategory.GENERAL
        assert entry.details == []
        assert entry.actor is None
