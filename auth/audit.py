"""
auth/audit.py -- Append-only login audit log.

One row per sign-in attempt that reaches a password decision (success or a
sub-threshold failure). Rows are inserted once and never updated or deleted
by the application. The flow controller only ever calls append();
list_for_email() exists for operators and tests.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import LoginLogEntry
from auth.store import make_engine

_metadata = MetaData()

_login_logs = Table(
    "login_logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer),  # NULL when the attempt matched no account
    Column("name", String(255)),
    Column("email", String(255), nullable=False, index=True),
    Column("status", String(16), nullable=False),  # "success" | "failed"
    Column("client_address", String(45)),
    Column("client_agent", Text),
    Column("reason", Text),
    Column("created_at", String(32), nullable=False),
)


class LoginAuditLog:
    """Append-only store for LoginLogEntry records."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def append(self, entry: LoginLogEntry) -> int:
        """Insert one entry and return its ID. created_at is stamped here, not by the caller."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _login_logs.insert().values(
                    account_id=entry.account_id,
                    name=entry.name,
                    email=entry.email,
                    status=entry.status,
                    client_address=entry.client_address,
                    client_agent=entry.client_agent,
                    reason=entry.reason,
                    created_at=datetime.now(timezone.utc).isoformat(),
                )
            )
            return result.inserted_primary_key[0]

    def list_for_email(self, email: str) -> list[LoginLogEntry]:
        """Return every entry for an email, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _login_logs.select().where(_login_logs.c.email == email).order_by(_login_logs.c.id)
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> LoginLogEntry:
    return LoginLogEntry(
        id=row.id,
        account_id=row.account_id,
        name=row.name,
        email=row.email,
        status=row.status,
        client_address=row.client_address,
        client_agent=row.client_agent,
        reason=row.reason,
        created_at=row.created_at,
    )
