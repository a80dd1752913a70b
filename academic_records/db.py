from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from academic_records.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


# Storage-level error kinds. The credential store and profile code translate
# these into their own error types.
UNIQUE_VIOLATION = "unique_violation"
CHECK_VIOLATION = "check_violation"
FOREIGN_KEY_VIOLATION = "foreign_key_violation"
NOT_NULL_VIOLATION = "not_null_violation"
STORAGE_FAILURE = "storage"

# Postgres SQLSTATE codes (class 23, integrity constraint violation).
_PG_ERROR_KINDS = {
    "23505": UNIQUE_VIOLATION,
    "23514": CHECK_VIOLATION,
    "23503": FOREIGN_KEY_VIOLATION,
    "23502": NOT_NULL_VIOLATION,
}

# SQLite reports constraint failures only through the message text.
_SQLITE_ERROR_KINDS = (
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("CHECK constraint failed", CHECK_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
    ("NOT NULL constraint failed", NOT_NULL_VIOLATION),
)


def classify_storage_error(exc: BaseException) -> str:
    """Return the storage error kind for a DB-API exception."""
    pgcode = getattr(exc, "pgcode", None)
    if pgcode:
        return _PG_ERROR_KINDS.get(str(pgcode), STORAGE_FAILURE)

    if isinstance(exc, sqlite3.IntegrityError):
        msg = str(exc)
        for prefix, kind in _SQLITE_ERROR_KINDS:
            if msg.startswith(prefix):
                return kind
    return STORAGE_FAILURE


def storage_error_target(exc: BaseException) -> str:
    """Name the constraint or column a DB-API error complains about, or "".

    Postgres: the constraint name from psycopg2 diagnostics
    (e.g. "students_user_id_key"). SQLite: the column list after the colon
    (e.g. "students.user_id").
    """
    diag = getattr(exc, "diag", None)
    if diag is not None:
        return str(getattr(diag, "constraint_name", None) or "")
    if isinstance(exc, sqlite3.IntegrityError):
        _, sep, target = str(exc).partition(":")
        return target.strip() if sep else ""
    return ""


def is_storage_error(exc: BaseException) -> bool:
    """True for errors raised by either database driver."""
    if isinstance(exc, sqlite3.Error):
        return True
    # psycopg2 errors all derive from psycopg2.Error, which carries pgcode.
    return hasattr(exc, "pgcode") and hasattr(exc, "pgerror")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single/double-quoted string literals and doubles every
    literal %. Not a full SQL parser, but enough for the statements in this
    codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            if in_double:
                if i + 1 < len(sql) and sql[i + 1] == '"':
                    out.append('"')
                    i += 2
                    continue
                in_double = False
            else:
                in_double = True
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        # psycopg2 formats the whole string, literals included.
        if ch == "%":
            out.append("%%")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._cur, name)


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Connect to SQLite or Postgres.

    One connection per unit of work: committed when the block exits normally,
    rolled back when it raises.

    - SQLite: uses WAL + NORMAL sync, foreign keys on.
    - Postgres: uses psycopg2 (RealDictCursor) so rows behave like dicts.
    """
    dsn = (db_dsn or "").strip()
    dialect = _detect_dialect(dsn)

    if dialect == "postgres":
        try:
            import psycopg2
            import psycopg2.extras
        except ImportError as e:
            raise RuntimeError(
                "Postgres selected but psycopg2 is not installed. "
                "Install psycopg2-binary and try again."
            ) from e

        raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
        conn = PGConnection(raw)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return

    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    conn.execute("PRAGMA foreign_keys = ON;")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect})")
    with connect(db_dsn) as conn:
        schema_sql = get_schema_sql(dialect)
        # Only one process may run schema DDL at a time.
        # - Postgres: advisory lock.
        # - SQLite: DDL already takes an exclusive database lock.
        if dialect == "postgres":
            conn.execute("SELECT pg_advisory_lock(2147483647);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483647);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        # Naive split is fine: the DDL has no semicolons inside literals.
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    conn.executescript(ddl)
