from __future__ import annotations

from typing import Any, Dict, List, Optional

from academic_records.config import Config
from academic_records.db import (
    CHECK_VIOLATION,
    NOT_NULL_VIOLATION,
    UNIQUE_VIOLATION,
    classify_storage_error,
    connect,
    is_storage_error,
)
from academic_records.errors import AuthFailure, DuplicateEmailError, RecordsError, StorageError, ValidationError
from academic_records.schema import ROLES
from academic_records.util.time import utcnow_iso

from .security import PasswordHasher, password_too_long


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


# Storage error kind -> error raised by the credential store.
STORAGE_ERROR_KINDS: Dict[str, type[RecordsError]] = {
    UNIQUE_VIOLATION: DuplicateEmailError,
    CHECK_VIOLATION: ValidationError,
    NOT_NULL_VIOLATION: ValidationError,
}


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def public_account(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    return {"id": int(d["id"]), "email": d["email"], "role": d["role"]}


def get_account_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE email=?",
        (e,),
    ).fetchone()


def get_account_by_id(conn: Any, account_id: int) -> Optional[Any]:
    return conn.execute(
        "SELECT * FROM users WHERE id=?",
        (int(account_id),),
    ).fetchone()


def list_accounts(conn: Any, *, role: str | None = None, limit: int = 100) -> List[Dict[str, Any]]:
    if role:
        rows = conn.execute(
            "SELECT id, email, role FROM users WHERE role=? ORDER BY id LIMIT ?",
            (role, int(limit)),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT id, email, role FROM users ORDER BY id LIMIT ?",
            (int(limit),),
        ).fetchall()
    return [public_account(r) for r in rows]


def insert_account(conn: Any, *, email: str, password_hash: str, role: str) -> Dict[str, Any]:
    """Insert one account row and return its public projection.

    Driver errors are translated through STORAGE_ERROR_KINDS; anything not in
    the table becomes StorageError.
    """
    try:
        conn.execute(
            """
            INSERT INTO users (email, password_hash, role, created_at)
            VALUES (?,?,?,?)
            """,
            (email, password_hash, role, utcnow_iso()),
        )
        row = get_account_by_email(conn, email)
    except Exception as e:
        if not is_storage_error(e):
            raise
        kind = classify_storage_error(e)
        err = STORAGE_ERROR_KINDS.get(kind, StorageError)
        _debug(f"insert_account failed kind={kind} email={email}")
        raise err() from e

    if row is None:
        raise StorageError("account_not_readable")
    return public_account(row)


def register(
    conn: Any,
    *,
    email: str | None,
    password: str | None,
    role: str | None,
    hasher: PasswordHasher,
) -> Dict[str, Any]:
    """Create an account and return {id, email, role}."""
    e = normalize_email(email)
    r = (role or "").strip().lower()
    if not e or not password or not r:
        raise ValidationError("all_fields_required")
    if "@" not in e:
        raise ValidationError("invalid_email")
    if r not in ROLES:
        raise ValidationError("invalid_role")
    if password_too_long(password):
        raise ValidationError("password_too_long")

    account = insert_account(conn, email=e, password_hash=hasher.hash(password), role=r)
    _debug(f"Registered account id={account['id']} email={e} role={r}")
    return account


def verify_credentials(
    conn: Any,
    *,
    email: str | None,
    password: str | None,
    hasher: PasswordHasher,
) -> Dict[str, Any]:
    """Return the public account for valid credentials, else raise AuthFailure."""
    row = get_account_by_email(conn, email or "")
    if row is None:
        hasher.verify_dummy(password or "")
        raise AuthFailure()
    if not hasher.verify(password or "", str(row["password_hash"])):
        raise AuthFailure()
    return public_account(row)


def bootstrap_admin_if_needed(cfg: Config, hasher: PasswordHasher) -> Optional[Dict[str, Any]]:
    """Create the first admin account if the users table is empty.

    - AUTH_BOOTSTRAP_ADMIN_EMAIL (default: admin@example.com)
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD (default: empty, which disables bootstrap)
    """

    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL)
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD
    if not email or not password:
        return None

    with connect(cfg.DB_DSN) as conn:
        n = conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"]
        if int(n) > 0:
            return None
        return register(conn, email=email, password=password, role="admin", hasher=hasher)
