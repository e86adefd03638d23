"""
SQLite persistence backend for the consent ledger.

Receives each committed change set inside a single SQL transaction and can
rebuild a LedgerState from disk. Uses WAL journal mode and thread-local
connections, like the rest of the storage code.

Author: Fabio Liberti
"""

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.exceptions import PersistenceError
from core.models import (
    AccessEvent,
    AccessGrant,
    AccessRequest,
    LedgerEvent,
    Principal,
    Record,
)

from .state import ChangeSet, LedgerState


DEFAULT_DB_PATH = Path("data/ledger.db")


class LedgerDB:
    """Thread-safe SQLite backend for ledger state."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize ledger database.

        Args:
            db_path: Path to SQLite database file. Use ':memory:' for testing.
                     Defaults to 'data/ledger.db'.
        """
        if db_path == ":memory:":
            self.db_path = ":memory:"
        else:
            self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(str(self.db_path))
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA foreign_keys=ON")
        return self._local.conn

    def _init_schema(self):
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS principals (
                principal_id TEXT PRIMARY KEY,
                role TEXT NOT NULL,
                registered INTEGER NOT NULL DEFAULT 1,
                registered_at INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS records (
                record_id TEXT PRIMARY KEY,
                owner TEXT NOT NULL,
                locator TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                creator TEXT NOT NULL,
                record_exists INTEGER NOT NULL DEFAULT 1
            );
            CREATE INDEX IF NOT EXISTS idx_records_owner
                ON records(owner);

            CREATE TABLE IF NOT EXISTS grants (
                record_id TEXT NOT NULL REFERENCES records(record_id),
                grantee TEXT NOT NULL,
                active INTEGER NOT NULL,
                valid_until INTEGER NOT NULL DEFAULT 0,
                scope TEXT NOT NULL DEFAULT '',
                granted_by TEXT NOT NULL,
                granted_at INTEGER NOT NULL,
                emergency INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (record_id, grantee)
            );

            CREATE TABLE IF NOT EXISTS access_requests (
                request_id INTEGER PRIMARY KEY,
                requester TEXT NOT NULL,
                record_id TEXT NOT NULL REFERENCES records(record_id),
                reason TEXT NOT NULL DEFAULT '',
                created_at INTEGER NOT NULL,
                processed INTEGER NOT NULL DEFAULT 0,
                approved INTEGER NOT NULL DEFAULT 0,
                processed_at INTEGER
            );

            CREATE TABLE IF NOT EXISTS access_events (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                record_id TEXT NOT NULL REFERENCES records(record_id),
                actor TEXT NOT NULL,
                success INTEGER NOT NULL,
                action TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                logged_by TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_access_events_record
                ON access_events(record_id);

            CREATE TABLE IF NOT EXISTS ledger_events (
                sequence INTEGER PRIMARY KEY,
                event_type TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                actor TEXT NOT NULL,
                record_id TEXT,
                payload TEXT NOT NULL DEFAULT '{}'
            );
            CREATE INDEX IF NOT EXISTS idx_ledger_events_type
                ON ledger_events(event_type);
            CREATE INDEX IF NOT EXISTS idx_ledger_events_record
                ON ledger_events(record_id);
        """)
        conn.commit()

    def close(self):
        """Close thread-local connection."""
        if hasattr(self._local, "conn") and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def persist(self, state: LedgerState, changes: ChangeSet) -> None:
        """
        Write one committed change set atomically.

        Raises:
            PersistenceError: If any statement fails; nothing is written.
        """
        if changes.is_empty():
            return

        conn = self._get_conn()
        try:
            with conn:
                for principal_id in sorted(changes.principal_ids):
                    self._save_principal(conn, state.principals[principal_id])
                for record_id in sorted(changes.record_ids):
                    self._save_record(conn, state.records[record_id])
                for key in sorted(changes.grant_keys):
                    self._save_grant(conn, state.grants[key])
                for request_id in sorted(changes.request_ids):
                    self._save_request(conn, state.requests[request_id])
                for event in changes.access_events:
                    self._save_access_event(conn, event)
                for event in changes.events:
                    self._save_ledger_event(conn, event)
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to persist ledger changes: {e}", operation="persist"
            ) from e

    def _save_principal(self, conn: sqlite3.Connection, principal: Principal) -> None:
        conn.execute(
            """INSERT OR REPLACE INTO principals
               (principal_id, role, registered, registered_at)
               VALUES (?, ?, ?, ?)""",
            (
                principal.principal_id,
                principal.role.value,
                1 if principal.registered else 0,
                principal.registered_at,
            ),
        )

    def _save_record(self, conn: sqlite3.Connection, record: Record) -> None:
        # Records are immutable: a plain INSERT surfaces an id clash as an error
        conn.execute(
            """INSERT INTO records
               (record_id, owner, locator, created_at, creator, record_exists)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                record.record_id,
                record.owner,
                record.locator,
                record.created_at,
                record.creator,
                1 if record.exists else 0,
            ),
        )

    def _save_grant(self, conn: sqlite3.Connection, grant: AccessGrant) -> None:
        conn.execute(
            """INSERT OR REPLACE INTO grants
               (record_id, grantee, active, valid_until, scope, granted_by,
                granted_at, emergency)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                grant.record_id,
                grant.grantee,
                1 if grant.active else 0,
                grant.valid_until,
                grant.scope,
                grant.granted_by,
                grant.granted_at,
                1 if grant.emergency else 0,
            ),
        )

    def _save_request(self, conn: sqlite3.Connection, request: AccessRequest) -> None:
        conn.execute(
            """INSERT OR REPLACE INTO access_requests
               (request_id, requester, record_id, reason, created_at,
                processed, approved, processed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                request.request_id,
                request.requester,
                request.record_id,
                request.reason,
                request.created_at,
                1 if request.processed else 0,
                1 if request.approved else 0,
                request.processed_at,
            ),
        )

    def _save_access_event(self, conn: sqlite3.Connection, event: AccessEvent) -> None:
        conn.execute(
            """INSERT INTO access_events
               (record_id, actor, success, action, timestamp, logged_by)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                event.record_id,
                event.actor,
                1 if event.success else 0,
                event.action,
                event.timestamp,
                event.logged_by,
            ),
        )

    def _save_ledger_event(self, conn: sqlite3.Connection, event: LedgerEvent) -> None:
        conn.execute(
            """INSERT INTO ledger_events
               (sequence, event_type, timestamp, actor, record_id, payload)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                event.sequence,
                event.event_type.value,
                event.timestamp,
                event.actor,
                event.record_id,
                json.dumps(event.payload, sort_keys=True),
            ),
        )

    # =========================================================================
    # READ PATH
    # =========================================================================

    def load_state(self) -> LedgerState:
        """Rebuild a LedgerState from everything persisted so far."""
        conn = self._get_conn()
        try:
            principals = [
                Principal(
                    principal_id=r["principal_id"],
                    role=r["role"],
                    registered=bool(r["registered"]),
                    registered_at=r["registered_at"],
                )
                for r in conn.execute("SELECT * FROM principals").fetchall()
            ]
            records = [
                Record(
                    record_id=r["record_id"],
                    owner=r["owner"],
                    locator=r["locator"],
                    created_at=r["created_at"],
                    creator=r["creator"],
                    exists=bool(r["record_exists"]),
                )
                for r in conn.execute("SELECT * FROM records").fetchall()
            ]
            grants = [
                AccessGrant(
                    record_id=r["record_id"],
                    grantee=r["grantee"],
                    active=bool(r["active"]),
                    valid_until=r["valid_until"],
                    scope=r["scope"],
                    granted_by=r["granted_by"],
                    granted_at=r["granted_at"],
                    emergency=bool(r["emergency"]),
                )
                for r in conn.execute("SELECT * FROM grants").fetchall()
            ]
            requests = [
                AccessRequest(
                    request_id=r["request_id"],
                    requester=r["requester"],
                    record_id=r["record_id"],
                    reason=r["reason"],
                    created_at=r["created_at"],
                    processed=bool(r["processed"]),
                    approved=bool(r["approved"]),
                    processed_at=r["processed_at"],
                )
                for r in conn.execute(
                    "SELECT * FROM access_requests ORDER BY request_id"
                ).fetchall()
            ]
            access_events = [
                AccessEvent(
                    record_id=r["record_id"],
                    actor=r["actor"],
                    success=bool(r["success"]),
                    action=r["action"],
                    timestamp=r["timestamp"],
                    logged_by=r["logged_by"],
                )
                for r in conn.execute(
                    "SELECT * FROM access_events ORDER BY seq"
                ).fetchall()
            ]
            events = [
                self._row_to_event(r)
                for r in conn.execute(
                    "SELECT * FROM ledger_events ORDER BY sequence"
                ).fetchall()
            ]
        except sqlite3.Error as e:
            raise PersistenceError(
                f"Failed to load ledger state: {e}", operation="load_state"
            ) from e

        return LedgerState.restore(
            principals, records, grants, requests, access_events, events
        )

    def _row_to_event(self, row: sqlite3.Row) -> LedgerEvent:
        return LedgerEvent(
            sequence=row["sequence"],
            event_type=row["event_type"],
            timestamp=row["timestamp"],
            actor=row["actor"],
            record_id=row["record_id"],
            payload=json.loads(row["payload"]) if row["payload"] else {},
        )

    def query_events(
        self,
        event_type: Optional[str] = None,
        record_id: Optional[str] = None,
        actor: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        """Query the persisted event log with filters, newest first."""
        conn = self._get_conn()
        query = "SELECT * FROM ledger_events WHERE 1=1"
        params: list = []

        if event_type:
            query += " AND event_type = ?"
            params.append(event_type)
        if record_id:
            query += " AND record_id = ?"
            params.append(record_id)
        if actor:
            query += " AND actor = ?"
            params.append(actor)

        query += " ORDER BY sequence DESC LIMIT ?"
        params.append(limit)

        rows = conn.execute(query, params).fetchall()
        return [self._row_to_event(r).to_log_entry() for r in rows]

    def count_events(self) -> int:
        conn = self._get_conn()
        row = conn.execute("SELECT COUNT(*) as cnt FROM ledger_events").fetchone()
        return row["cnt"]
