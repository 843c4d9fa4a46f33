"""
Repository for the audit trail.

Handles the append-only audit table and the sink used by the audit queue.
"""

import json
from datetime import datetime
from typing import List, Optional, Sequence

from .db import DEFAULT_DB_PATH, IN_MEMORY_DB, get_connection
from .models import AuditEntry, AuditOutcome, RiskLevel

_INSERT_AUDIT_ENTRY = """
    INSERT INTO audit_entry
    (audit_id, timestamp, operation, resource, outcome, risk_level, compliance_flags)
    VALUES (?, ?, ?, ?, ?, ?, ?)
"""


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the audit_entry table if it doesn't exist.

    This creates an append-only trail of audited operations.
    No UPDATE or DELETE operations should ever be performed on this table.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS audit_entry (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                audit_id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,
                operation TEXT NOT NULL,
                resource TEXT NOT NULL,
                outcome TEXT NOT NULL,
                risk_level TEXT NOT NULL,
                compliance_flags TEXT NOT NULL DEFAULT '[]'
            )
        """)
        conn.commit()
    finally:
        conn.close()


def _to_row(entry: AuditEntry) -> tuple:
    return (
        entry.audit_id,
        entry.timestamp.isoformat(),
        entry.operation,
        entry.resource,
        entry.outcome.value,
        entry.risk_level.value,
        json.dumps(list(entry.compliance_flags)),
    )


def insert_audit_entries(entries: Sequence[AuditEntry], db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert a batch of audit entries atomically.

    All entries are inserted in a single transaction: either the whole batch
    is stored or none of it is.

    Args:
        entries: Audit entries to record
        db_path: Path to SQLite database file

    Raises:
        sqlite3.Error: If the batch could not be written; nothing is stored
    """
    if not entries:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        for entry in entries:
            conn.execute(_INSERT_AUDIT_ENTRY, _to_row(entry))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetch_recent_audit_entries(
    operation: Optional[str] = None,
    outcome: Optional[AuditOutcome] = None,
    limit: int = 100,
    db_path: str = DEFAULT_DB_PATH,
) -> List[AuditEntry]:
    """Fetch recent audit entries, optionally filtered by operation and outcome.

    Args:
        operation: Optional filter for a specific operation
        outcome: Optional filter for success or failure entries
        limit: Maximum number of entries to return
        db_path: Path to SQLite database file

    Returns:
        List of audit entries ordered newest first
    """
    conn = get_connection(db_path)
    try:
        query = (
            "SELECT audit_id, timestamp, operation, resource, outcome, risk_level, "
            "compliance_flags FROM audit_entry"
        )
        params: list = []
        conditions = []
        if operation:
            conditions.append("operation = ?")
            params.append(operation)
        if outcome is not None:
            conditions.append("outcome = ?")
            params.append(outcome.value)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = conn.execute(query, params)
        return [
            AuditEntry(
                audit_id=row[0],
                timestamp=datetime.fromisoformat(row[1]),
                operation=row[2],
                resource=row[3],
                outcome=AuditOutcome(row[4]),
                risk_level=RiskLevel(row[5]),
                compliance_flags=tuple(json.loads(row[6])),
            )
            for row in cursor.fetchall()
        ]
    finally:
        conn.close()


class SqliteAuditSink:
    """``persistAuditBatch`` collaborator backed by the audit_entry table.

    Every batch opens its own connection, so the database must be a file.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        if db_path == IN_MEMORY_DB:
            raise ValueError("SqliteAuditSink needs a database file, not ':memory:'")
        self.db_path = db_path
        initialize_schema(db_path)

    def __call__(self, entries: Sequence[AuditEntry]) -> None:
        insert_audit_entries(entries, db_path=self.db_path)
