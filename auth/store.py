"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account / _row_to_attempt are the
mappers. Service and route code never touches SQL directly.

Resource lifecycle:
  The SQLAlchemy Engine owned by an AccountStore IS the connection pool. It is
  created explicitly by the composition root (the FastAPI lifespan) and
  disposed by close() at shutdown -- there is no module-level pool. Every
  method checks a connection out with a `with` block, so the connection goes
  back to the pool on every path, including exceptions. The Engine's pool is
  safe for concurrent checkout from the request thread pool.

Security:
  All queries use bound parameters. No f-strings in SQL.

  token_version is never written through update paths that take arbitrary
  fields; only increment_token_version() changes it, atomically in SQL.

Schema: created on construction when create_schema=True (the default), which
is enough for SQLite dev/test databases. Production deployments may manage
the same two tables externally and pass create_schema=False.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    false,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import Account, LoginAttempt

logger = logging.getLogger("authkit.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(45), nullable=False),
    Column("surname", String(45), nullable=False),
    Column("password_hash", Text),
    Column("email_verified", Boolean, nullable=False, server_default=false()),
    Column("status", String(16), nullable=False, server_default="active"),
    Column("token_version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_login_attempts = Table(
    "login_attempts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, ForeignKey("accounts.id"), nullable=False),
    Column("source_ip", String(45), nullable=False),
    Column("user_agent", Text, nullable=False),
    Column("success", Boolean, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_STATUSES = {"active", "inactive", "deleted"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account and LoginAttempt records.

    Usage:
        store = AccountStore("sqlite:///authkit.db")
        account_id = store.create_account(Account(email="a@b.c", name="Ada", surname="Lovelace"))
        account = store.get_by_id(account_id)
        store.close()
    """

    def __init__(self, db_url: str, create_schema: bool = True) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        if create_schema:
            _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers treat that as "email already in use" -- it also covers the
        race where two signups for the same address pass the lookup check.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    email=account.email,
                    name=account.name,
                    surname=account.surname,
                    password_hash=account.password_hash,
                    email_verified=account.email_verified,
                    status=account.status,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> Account | None:
        """Look up a non-deleted account by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where((_accounts.c.email == email) & (_accounts.c.status != "deleted"))
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up a non-deleted account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where((_accounts.c.id == account_id) & (_accounts.c.status != "deleted"))
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def increment_token_version(self, account_id: int) -> int | None:
        """Bump the revocation counter and return the new value.

        Every token issued before the bump carries the old value and fails the
        version gate from now on. Returns None if the account does not exist.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(token_version=_accounts.c.token_version + 1)
            )
            if result.rowcount == 0:
                return None
            version = conn.execute(
                select(_accounts.c.token_version).where(_accounts.c.id == account_id)
            ).scalar_one()
        logger.info("Token version for account %d bumped to %d", account_id, version)
        return version

    def update_password_hash(self, account_id: int, password_hash: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update().where(_accounts.c.id == account_id).values(password_hash=password_hash)
            )
            conn.commit()
        return result.rowcount > 0

    def update_status(self, account_id: int, status: str) -> bool:
        """Set status to "active", "inactive" or "deleted".

        Raises ValueError for any other value -- fail fast rather than writing
        a status the rest of the code does not recognise.
        """
        if status not in _STATUSES:
            raise ValueError(f"Unknown account status: {status!r}")
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(status=status))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, account_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(last_login=_now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Login attempts
    # ------------------------------------------------------------------

    def record_login_attempt(self, account_id: int, source_ip: str, user_agent: str, success: bool) -> None:
        """Append an audit row for a password check against an existing account."""
        with self.engine.connect() as conn:
            conn.execute(
                _login_attempts.insert().values(
                    account_id=account_id,
                    source_ip=source_ip[:45],
                    user_agent=user_agent,
                    success=success,
                    created_at=_now_iso(),
                )
            )
            conn.commit()

    def list_login_attempts(self, account_id: int) -> list[LoginAttempt]:
        """Return an account's login attempts, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _login_attempts.select()
                .where(_login_attempts.c.account_id == account_id)
                .order_by(_login_attempts.c.id.desc())
            ).fetchall()
        return [_row_to_attempt(r) for r in rows]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if a connection can be checked out and used."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        name=row.name,
        surname=row.surname,
        password_hash=row.password_hash,
        email_verified=bool(row.email_verified),
        status=row.status,
        token_version=row.token_version,
        created_at=row.created_at,
        last_login=row.last_login,
    )


def _row_to_attempt(row) -> LoginAttempt:
    return LoginAttempt(
        id=row.id,
        account_id=row.account_id,
        source_ip=row.source_ip,
        user_agent=row.user_agent,
        success=bool(row.success),
        created_at=row.created_at,
    )
