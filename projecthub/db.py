# projecthub/db.py
# Storage handle supporting PostgreSQL (production) and SQLite (dev/tests)

from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Mapping, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Connection, Engine

from projecthub.config import DATABASE_URL

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_url(url: str) -> str:
    # Managed Postgres providers still hand out the legacy postgres:// scheme
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def _build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine with pooling suited to the backend."""
    url = _normalize_url(url)

    if url.startswith("sqlite"):
        in_memory = url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url
        if in_memory:
            # One shared connection, otherwise every checkout sees an empty database
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=pool.StaticPool,
                echo=echo,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")

    return create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        echo=echo,
    )


class Database:
    """
    Explicit storage handle.

    Created once by the app factory and injected into request handlers; there
    is no module-level client. Use `transaction()` for every write so that all
    statements issued through the yielded connection commit together or roll
    back together.
    """

    def __init__(self, url: str = DATABASE_URL, echo: bool = False):
        self.url = _normalize_url(url)
        self.engine = _build_engine(self.url, echo=echo)
        print(f"[DB] Using {self.dialect} ({urlparse(self.url).hostname or 'local'})")

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @property
    def is_postgres(self) -> bool:
        return self.dialect == "postgresql"

    @contextmanager
    def connect(self) -> Generator[Connection, None, None]:
        """Read-only work. Nothing issued here is committed."""
        with self.engine.connect() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """
        Transactional scope: commits when the block exits normally and rolls
        back when it raises.
        """
        with self.engine.begin() as conn:
            yield conn

    def dispose(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------
# Query helpers (raw SQL, named parameters)
# ---------------------------------------------------------
def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Unsafe SQL identifier: {name!r}")
    return name


def fetch_one(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
    row = conn.execute(text(sql), dict(params or {})).mappings().first()
    return dict(row) if row is not None else None


def fetch_all(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    rows = conn.execute(text(sql), dict(params or {})).mappings().all()
    return [dict(row) for row in rows]


def fetch_count(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
    return int(conn.execute(text(sql), dict(params or {})).scalar() or 0)


def execute(conn: Connection, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
    """Run a statement and return the affected row count."""
    return conn.execute(text(sql), dict(params or {})).rowcount


def insert_row(conn: Connection, table: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Insert one row and return it as stored.

    Column names come from server-side schemas, never from raw client keys;
    they are still checked against a strict identifier pattern.
    """
    table = _check_identifier(table)
    columns = [_check_identifier(column) for column in values]
    sql = (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(':' + column for column in columns)}) "
        "RETURNING *"
    )
    row = conn.execute(text(sql), dict(values)).mappings().first()
    return dict(row)


def update_row(
    conn: Connection,
    table: str,
    row_id: int,
    values: Mapping[str, Any],
    company_id: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """
    Update one row by id (optionally constrained to a company) and return it.

    Returns None when no row matched.
    """
    table = _check_identifier(table)
    assignments = ", ".join(f"{_check_identifier(column)} = :{column}" for column in values)
    params: Dict[str, Any] = dict(values)
    params["pk_id"] = row_id

    where = "id = :pk_id"
    if company_id is not None:
        where += " AND company_id = :scope_company_id"
        params["scope_company_id"] = company_id

    if not assignments:
        return fetch_one(conn, f"SELECT * FROM {table} WHERE {where}", params)

    sql = f"UPDATE {table} SET {assignments} WHERE {where} RETURNING *"
    row = conn.execute(text(sql), params).mappings().first()
    return dict(row) if row is not None else None
