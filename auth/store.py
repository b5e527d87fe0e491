"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
CredentialStore is the interface the service layer depends on; AccountStore
is the SQLAlchemy implementation and _row_to_account is the mapper. Service
and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL. update_account()
  only accepts column names from a fixed whitelist.

Soft delete:
  deleted_at is a tombstone. Every lookup filters on deleted_at IS NULL, so a
  deleted account is indistinguishable from one that never existed. Email
  uniqueness is enforced by a partial unique index over live rows only, which
  lets an address be registered again after its account was deleted.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import Account, AccountProfile, Role
from core.query import Page, PageOptions, paginate

# Columns a listing request may sort or search by. Never derived from input.
SORTABLE_COLUMNS: tuple[str, ...] = ("id", "name", "email", "role", "created_at", "updated_at")
SEARCHABLE_COLUMNS: tuple[str, ...] = ("name", "email")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.USER.value),
    Column("refresh_token_hash", String(64)),  # HMAC-SHA256 hex, NULL = no session
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("deleted_at", String(32)),
)

Index(
    "uq_accounts_live_email",
    _accounts.c.email,
    unique=True,
    sqlite_where=_accounts.c.deleted_at.is_(None),
    postgresql_where=_accounts.c.deleted_at.is_(None),
)

_LIVE = _accounts.c.deleted_at.is_(None)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    """What AuthService needs from persistence. AccountStore implements it;
    tests may substitute any object with these methods."""

    def get_by_id(self, account_id: int) -> Account | None: ...

    def get_by_email(self, email: str) -> Account | None: ...

    def create_account(self, account: Account) -> int: ...

    def update_account(self, account_id: int, **fields: Any) -> bool: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

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
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///accessdesk.db")
        account_id = store.create_account(Account(name="Ada", email="ada@example.com", password_hash=h))
        account = store.get_by_email("ada@example.com")
        store.close()
    """

    _UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "role", "password_hash", "refresh_token_hash"})

    def __init__(self, db_url: str = "sqlite:///accessdesk.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up a live account by primary key. Returns None if absent or deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where((_accounts.c.id == account_id) & _LIVE)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up a live account by exact email. Returns None if absent or deleted."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where((_accounts.c.email == email) & _LIVE)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self, options: PageOptions) -> Page:
        """Return one page of live accounts as safe profile dicts.

        Sort and search columns are constrained to SORTABLE_COLUMNS and
        SEARCHABLE_COLUMNS; options must come from core.query.build_options().
        """
        return paginate(
            self.engine,
            _accounts,
            options,
            searchable_columns=SEARCHABLE_COLUMNS,
            base_filter=_LIVE,
            row_mapper=lambda row: AccountProfile.from_account(_row_to_account(row)).to_dict(),
        )

    def ping(self) -> bool:
        """Cheap connectivity check for the health endpoint."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if a live account already uses
        the email. AuthService checks first, but a concurrent registration can
        still race past that check; the partial unique index is the backstop.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    name=account.name,
                    email=account.email,
                    password_hash=account.password_hash,
                    role=Role(account.role).value,
                    refresh_token_hash=account.refresh_token_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_account(self, account_id: int, **fields: Any) -> bool:
        """Update mutable fields on a live account in a single statement.

        Accepted fields: name, role, password_hash, refresh_token_hash.
        Unknown fields raise ValueError -- fail fast rather than silently
        dropping a write. updated_at is stamped automatically.

        Returns True if a row was updated, False if the account was not found.
        """
        unknown = set(fields) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where((_accounts.c.id == account_id) & _LIVE).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def soft_delete(self, account_id: int) -> bool:
        """Tombstone an account and drop its refresh session.

        The row stays in the table; it simply stops matching lookups.
        Returns True if a live account was deleted, False otherwise.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where((_accounts.c.id == account_id) & _LIVE)
                .values(deleted_at=now, updated_at=now, refresh_token_hash=None)
            )
            conn.commit()
        return result.rowcount > 0

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
        role=Role(row.role),
        refresh_token_hash=row.refresh_token_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted_at=row.deleted_at,
    )
