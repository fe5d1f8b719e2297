"""
auth/store.py -- SQLAlchemy Core persistence layer for principals.

Pattern: Repository + Data Mapper. PrincipalStore is the repository;
_row_to_principal is the mapper. Orchestrator and route code never touch SQL.

Contract used by the auth orchestrator:
  find_principal(email)   -> Principal | None
  create_principal(...)   -> Principal, or DuplicateIdentityError

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is enforced by a UNIQUE constraint, not by a prior
  SELECT. The orchestrator's pre-check is only an early exit; two concurrent
  registrations for the same address still end with exactly one row and one
  DuplicateIdentityError.

  Emails are normalized (strip + lowercase) here as well as at the API edge
  so the UNIQUE constraint is case-insensitive in effect.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateIdentityError
from auth.models import Principal
from core.config import Settings

logger = logging.getLogger("authgate.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_principals = Table(
    "principals",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for Principal records.

    Usage:
        store = PrincipalStore(settings)
        p = store.create_principal(name="Ada", email="ada@x.com", password_hash=h)
        store.find_principal("ADA@x.com")   # same record
        store.close()
    """

    def __init__(self, settings: Settings | None = None, db_url: str | None = None) -> None:
        url = db_url or (settings.database_url if settings is not None else None)
        if url is None:
            raise ValueError("PrincipalStore needs settings or an explicit db_url")
        connect_args: dict = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(url, connect_args=connect_args)
        if url.startswith("sqlite") and "mode=memory" not in url and ":memory:" not in url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_principal(self, email: str) -> Principal | None:
        """Look up a principal by email (case-insensitive). Returns None if absent."""
        with self.engine.connect() as conn:
            row = conn.execute(_principals.select().where(_principals.c.email == normalize_email(email))).fetchone()
        return _row_to_principal(row) if row is not None else None

    def get_by_id(self, principal_id: int) -> Principal | None:
        """Look up a principal by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_principals.select().where(_principals.c.id == principal_id)).fetchone()
        return _row_to_principal(row) if row is not None else None

    def list_principals(self) -> list[Principal]:
        """Return every principal ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_principals.select().order_by(_principals.c.id)).fetchall()
        logger.info("Retrieved %d principals from database", len(rows))
        return [_row_to_principal(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_principal(self, name: str, email: str, password_hash: str, role: str = "user") -> Principal:
        """Insert a new principal and return the stored record.

        Raises DuplicateIdentityError if the email is already registered.
        The insert is committed before this method returns; a caller that
        fails afterwards (e.g. while signing a token) leaves a complete,
        valid principal behind and the client can simply sign in.
        """
        email = normalize_email(email)
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _principals.insert().values(
                        name=name,
                        email=email,
                        password_hash=password_hash,
                        role=role,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateIdentityError(email) from exc
        return Principal(
            id=result.inserted_primary_key[0],
            name=name,
            email=email,
            password_hash=password_hash,
            role=role,
            created_at=now,
            updated_at=now,
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_principal(row) -> Principal:
    return Principal(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
