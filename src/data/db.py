"""
Bin Duty Dashboard — Household Database.

One SQLite file holds the whole household document: residents, the rotation
pointer, the event ledger, issues, settings and admin accounts.

Every read or write goes through HouseholdDB.transaction(), which yields a
HouseholdTx bound to a single connection. The transaction commits when the
block exits cleanly and rolls back on any exception, so a mutation and its
ledger entry are stored together or not at all. sqlite3 errors surface as
PersistenceError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from src.core.errors import PersistenceError
from src.data.models import (
    DEFAULT_ANNOUNCEMENT_TEMPLATE,
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
    LedgerEntry,
    Resident,
    Role,
    SystemSettings,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS residents (
        id           TEXT    PRIMARY KEY,
        position     INTEGER NOT NULL,
        name         TEXT    NOT NULL,
        flat_number  TEXT    NOT NULL DEFAULT '',
        notes        TEXT,
        whatsapp     TEXT,
        sms          TEXT,
        email        TEXT
    );
    CREATE TABLE IF NOT EXISTS rotation (
        id            INTEGER PRIMARY KEY CHECK (id = 1),
        current_index INTEGER NOT NULL DEFAULT 0
    );
    CREATE TABLE IF NOT EXISTS logs (
        id        INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT    NOT NULL,
        message   TEXT    NOT NULL
    );
    CREATE TABLE IF NOT EXISTS issues (
        id          TEXT PRIMARY KEY,
        reported_by TEXT NOT NULL,
        flat_number TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL,
        image_url   TEXT,
        status      TEXT NOT NULL,
        timestamp   TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS settings (
        id                    INTEGER PRIMARY KEY CHECK (id = 1),
        owner_name            TEXT NOT NULL DEFAULT '',
        owner_contact         TEXT NOT NULL DEFAULT '',
        report_issue_link     TEXT NOT NULL DEFAULT '',
        reminder_template     TEXT NOT NULL,
        announcement_template TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS admins (
        id         TEXT PRIMARY KEY,
        email      TEXT NOT NULL UNIQUE COLLATE NOCASE,
        role       TEXT NOT NULL,
        credential TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL
    );
"""

# Columns added to the ledger after the plain "timestamp + message" layout.
_LOG_MIGRATIONS = {
    "actor": "ALTER TABLE logs ADD COLUMN actor TEXT",
    "category": "ALTER TABLE logs ADD COLUMN category TEXT NOT NULL DEFAULT 'general'",
    "subject": "ALTER TABLE logs ADD COLUMN subject TEXT",
    "status": "ALTER TABLE logs ADD COLUMN status TEXT",
    "details_json": "ALTER TABLE logs ADD COLUMN details_json TEXT NOT NULL DEFAULT '[]'",
}


class HouseholdDB:
    """SQLite-backed storage for the whole household document."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create tables if they don't exist, seed singletons, migrate schema."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {self._db_path}: {exc}") from exc
        try:
            with conn:
                conn.executescript(_SCHEMA)
                existing_cols = {
                    row[1] for row in conn.execute("PRAGMA table_info(logs)").fetchall()
                }
                for column, ddl in _LOG_MIGRATIONS.items():
                    if column not in existing_cols:
                        conn.execute(ddl)
                conn.execute(
                    "INSERT OR IGNORE INTO rotation (id, current_index) VALUES (1, 0)"
                )
                conn.execute(
                    """
                    INSERT OR IGNORE INTO settings
                        (id, reminder_template, announcement_template)
                    VALUES (1, ?, ?)
                    """,
                    (DEFAULT_REMINDER_TEMPLATE, DEFAULT_ANNOUNCEMENT_TEMPLATE),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot initialize database {self._db_path}: {exc}") from exc
        finally:
            conn.close()
        logger.debug("Household tables initialized at %s", self._db_path)

    @contextmanager
    def transaction(self) -> Iterator[HouseholdTx]:
        """Yield a HouseholdTx; commit on success, roll back on any exception."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open database {self._db_path}: {exc}") from exc
        try:
            with conn:
                yield HouseholdTx(conn)
        except sqlite3.Error as exc:
            logger.error("Transaction rolled back on %s: %s", self._db_path, exc)
            raise PersistenceError(str(exc)) from exc
        finally:
            conn.close()


class HouseholdTx:
    """Row-level operations bound to one open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Residents
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_resident(row: sqlite3.Row) -> Resident:
        return Resident(
            id=row["id"],
            name=row["name"],
            flat_number=row["flat_number"],
            notes=row["notes"],
            contact=Contact(
                whatsapp=row["whatsapp"],
                sms=row["sms"],
                email=row["email"],
            ),
        )

    def list_residents(self) -> list[Resident]:
        rows = self._conn.execute(
            "SELECT * FROM residents ORDER BY position"
        ).fetchall()
        return [self._row_to_resident(r) for r in rows]

    def get_resident(self, resident_id: str) -> Resident | None:
        row = self._conn.execute(
            "SELECT * FROM residents WHERE id = ?", (resident_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_resident(row)

    def insert_resident(self, resident: Resident) -> None:
        """Append a resident at the end of the ordering."""
        (next_position,) = self._conn.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM residents"
        ).fetchone()
        self._conn.execute(
            """
            INSERT INTO residents
                (id, position, name, flat_number, notes, whatsapp, sms, email)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                resident.id, next_position, resident.name, resident.flat_number,
                resident.notes, resident.contact.whatsapp, resident.contact.sms,
                resident.contact.email,
            ),
        )

    def update_resident(self, resident: Resident) -> None:
        self._conn.execute(
            """
            UPDATE residents
               SET name = ?, flat_number = ?, notes = ?,
                   whatsapp = ?, sms = ?, email = ?
             WHERE id = ?
            """,
            (
                resident.name, resident.flat_number, resident.notes,
                resident.contact.whatsapp, resident.contact.sms,
                resident.contact.email, resident.id,
            ),
        )

    def delete_resident(self, resident_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM residents WHERE id = ?", (resident_id,)
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def get_rotation_index(self) -> int:
        row = self._conn.execute(
            "SELECT current_index FROM rotation WHERE id = 1"
        ).fetchone()
        return row["current_index"] if row is not None else 0

    def set_rotation_index(self, index: int) -> None:
        self._conn.execute(
            "UPDATE rotation SET current_index = ? WHERE id = 1", (index,)
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> LedgerEntry:
        details = [
            DeliveryDetail(
                recipient=d["recipient"],
                method=DeliveryMethod(d["method"]),
                status=DeliveryStatus(d["status"]),
                content=d.get("content", ""),
                error=d.get("error"),
            )
            for d in json.loads(row["details_json"] or "[]")
        ]
        return LedgerEntry(
            id=row["id"],
            timestamp=row["timestamp"],
            message=row["message"],
            actor=row["actor"],
            category=LedgerCategory(row["category"] or LedgerCategory.GENERAL.value),
            subject=row["subject"],
            status=DispatchStatus(row["status"]) if row["status"] else None,
            details=details,
        )

    def insert_log(
        self,
        timestamp: str,
        message: str,
        actor: str | None,
        category: LedgerCategory,
        subject: str | None,
        status: DispatchStatus | None,
        details: Iterable[DeliveryDetail],
    ) -> LedgerEntry:
        details = list(details)
        details_json = json.dumps([
            {
                "recipient": d.recipient,
                "method": d.method.value,
                "status": d.status.value,
                "content": d.content,
                "error": d.error,
            }
            for d in details
        ])
        cursor = self._conn.execute(
            """
            INSERT INTO logs
                (timestamp, message, actor, category, subject, status, details_json)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                timestamp, message, actor, category.value, subject,
                status.value if status else None, details_json,
            ),
        )
        return LedgerEntry(
            id=cursor.lastrowid,
            timestamp=timestamp,
            message=message,
            actor=actor,
            category=category,
            subject=subject,
            status=status,
            details=details,
        )

    def last_log_timestamp(self) -> str | None:
        row = self._conn.execute(
            "SELECT timestamp FROM logs ORDER BY id DESC LIMIT 1"
        ).fetchone()
        return row["timestamp"] if row is not None else None

    def list_logs(
        self,
        categories: Iterable[LedgerCategory] | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[LedgerEntry]:
        query = "SELECT * FROM logs"
        params: list = []
        if categories is not None:
            values = [c.value for c in categories]
            query += f" WHERE category IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        query += " ORDER BY id DESC" if newest_first else " ORDER BY id"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def delete_logs(self, entry_ids: Iterable[int]) -> int:
        ids = list(entry_ids)
        if not ids:
            return 0
        cursor = self._conn.execute(
            f"DELETE FROM logs WHERE id IN ({', '.join('?' for _ in ids)})", ids,
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_issue(row: sqlite3.Row) -> Issue:
        return Issue(
            id=row["id"],
            reported_by=row["reported_by"],
            flat_number=row["flat_number"],
            description=row["description"],
            image_url=row["image_url"],
            status=IssueStatus(row["status"]),
            timestamp=row["timestamp"],
        )

    def insert_issue(self, issue: Issue) -> None:
        self._conn.execute(
            """
            INSERT INTO issues
                (id, reported_by, flat_number, description, image_url, status, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                issue.id, issue.reported_by, issue.flat_number, issue.description,
                issue.image_url, issue.status.value, issue.timestamp,
            ),
        )

    def get_issue(self, issue_id: str) -> Issue | None:
        row = self._conn.execute(
            "SELECT * FROM issues WHERE id = ?", (issue_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_issue(row)

    def list_issues(self, status: IssueStatus | None = None) -> list[Issue]:
        query = "SELECT * FROM issues"
        params: list = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY timestamp DESC, rowid DESC"
        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_issue(r) for r in rows]

    def set_issue_status(self, issue_id: str, status: IssueStatus) -> None:
        self._conn.execute(
            "UPDATE issues SET status = ? WHERE id = ?", (status.value, issue_id)
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> SystemSettings:
        row = self._conn.execute("SELECT * FROM settings WHERE id = 1").fetchone()
        if row is None:
            return SystemSettings()
        return SystemSettings(
            owner_name=row["owner_name"],
            owner_contact=row["owner_contact"],
            report_issue_link=row["report_issue_link"],
            reminder_template=row["reminder_template"],
            announcement_template=row["announcement_template"],
        )

    def save_settings(self, system_settings: SystemSettings) -> None:
        self._conn.execute(
            """
            UPDATE settings
               SET owner_name = ?, owner_contact = ?, report_issue_link = ?,
                   reminder_template = ?, announcement_template = ?
             WHERE id = 1
            """,
            (
                system_settings.owner_name, system_settings.owner_contact,
                system_settings.report_issue_link, system_settings.reminder_template,
                system_settings.announcement_template,
            ),
        )

    # ------------------------------------------------------------------
    # Admins
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_admin(row: sqlite3.Row) -> AdminUser:
        return AdminUser(
            id=row["id"],
            email=row["email"],
            role=Role(row["role"]),
            credential=row["credential"],
            created_at=row["created_at"],
        )

    def list_admins(self) -> list[AdminUser]:
        rows = self._conn.execute(
            "SELECT * FROM admins ORDER BY created_at, email"
        ).fetchall()
        return [self._row_to_admin(r) for r in rows]

    def get_admin(self, admin_id: str) -> AdminUser | None:
        row = self._conn.execute(
            "SELECT * FROM admins WHERE id = ?", (admin_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_admin(row)

    def find_admin_by_email(self, email: str) -> AdminUser | None:
        """Case-insensitive lookup by email."""
        row = self._conn.execute(
            "SELECT * FROM admins WHERE email = ? COLLATE NOCASE", (email.strip(),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_admin(row)

    def insert_admin(self, admin: AdminUser) -> None:
        self._conn.execute(
            "INSERT INTO admins (id, email, role, credential, created_at) VALUES (?, ?, ?, ?, ?)",
            (admin.id, admin.email, admin.role.value, admin.credential, admin.created_at),
        )

    def update_admin(self, admin: AdminUser) -> None:
        self._conn.execute(
            "UPDATE admins SET email = ?, role = ?, credential = ? WHERE id = ?",
            (admin.email, admin.role.value, admin.credential, admin.id),
        )

    def delete_admin(self, admin_id: str) -> bool:
        cursor = self._conn.execute("DELETE FROM admins WHERE id = ?", (admin_id,))
        return cursor.rowcount > 0
