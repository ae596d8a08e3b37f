"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Flow and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  Two sign-in attempts against the same account can run at the same time.
  The failed-attempt path therefore never does read-increment-write in
  Python: register_failed_attempt() increments the counter and sets the lock
  flag in one conditional UPDATE inside a single transaction, then reads the
  result back in that same transaction. save() writes only the fields the
  caller names, so a verification or unlock does not overwrite a counter
  another request has just bumped.

DB path: auth/authflow.db unless DATABASE_URL is set.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, case, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.pool import SingletonThreadPool

from auth.models import Account

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("is_locked", Integer, nullable=False, server_default="0"),
    Column("login_attempts", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

# Columns save() may write. email and created_at are immutable after creation.
_MUTABLE_FIELDS = ("name", "password_hash", "is_verified", "is_locked", "login_attempts")
_BOOL_FIELDS = {"is_verified", "is_locked"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store in this package uses."""
    kwargs: dict = {}
    in_memory = ":memory:" in db_url or "mode=memory" in db_url
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if in_memory:
            # A memory database lives only as long as a connection holds it open.
            kwargs["poolclass"] = SingletonThreadPool
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite") and not in_memory:
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        account = store.create("Ada", "ada@example.com", hash_password("secret"))
        store.find_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def create(self, name: str, email: str, password_hash: str) -> Account:
        """Insert a new unverified, unlocked account and return it.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers that checked find_by_email() first should still treat
        IntegrityError as a conflict -- a concurrent sign-up can win the race.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    name=name,
                    email=email,
                    password_hash=password_hash,
                    is_verified=0,
                    is_locked=0,
                    login_attempts=0,
                    created_at=_now_iso(),
                )
            )
            account_id = result.inserted_primary_key[0]
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row)

    def save(self, account: Account, *fields: str) -> None:
        """Persist in-place changes to an account.

        With no field names, every mutable field is written. With field names,
        only those columns are written. Unknown or immutable names raise
        ValueError rather than being silently ignored.
        """
        if account.id is None:
            raise ValueError("Cannot save an account that has not been created.")
        names = fields or _MUTABLE_FIELDS
        unknown = set(names) - set(_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown or immutable account fields: {sorted(unknown)!r}")
        values = {}
        for name in names:
            value = getattr(account, name)
            values[name] = (1 if value else 0) if name in _BOOL_FIELDS else value
        with self.engine.begin() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account.id).values(**values))

    def register_failed_attempt(self, account_id: int, max_attempts: int) -> tuple[int, bool]:
        """Atomically count one failed password attempt.

        Increments login_attempts and, when the new value reaches max_attempts,
        sets is_locked -- both in a single UPDATE guarded by is_locked = 0, so
        concurrent failures can neither lose an increment nor count past a
        lock another request already applied.

        Returns (login_attempts, is_locked) as stored after the update. If the
        account was already locked, the counter is left untouched and
        (current_attempts, True) is returned.

        Raises LookupError if the account no longer exists.
        """
        incremented = _accounts.c.login_attempts + 1
        with self.engine.begin() as conn:
            conn.execute(
                _accounts.update()
                .where((_accounts.c.id == account_id) & (_accounts.c.is_locked == 0))
                .values(
                    login_attempts=incremented,
                    is_locked=case((incremented >= max_attempts, 1), else_=0),
                )
            )
            row = conn.execute(
                select(_accounts.c.login_attempts, _accounts.c.is_locked).where(_accounts.c.id == account_id)
            ).fetchone()
        if row is None:
            raise LookupError(f"Account {account_id} does not exist.")
        return row.login_attempts, bool(row.is_locked)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by the health check."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        is_verified=bool(row.is_verified),
        is_locked=bool(row.is_locked),
        login_attempts=row.login_attempts,
        created_at=row.created_at,
    )
