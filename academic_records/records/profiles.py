from __future__ import annotations

from typing import Any, Dict, Optional

from academic_records.errors import NotFoundError, RecordExistsError, StorageError, ValidationError
from academic_records.db import (
    CHECK_VIOLATION,
    FOREIGN_KEY_VIOLATION,
    NOT_NULL_VIOLATION,
    UNIQUE_VIOLATION,
    classify_storage_error,
    is_storage_error,
    storage_error_target,
)
from academic_records.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[profiles] {msg}")


_PROFILE_ERROR_CODES = {
    CHECK_VIOLATION: "invalid_profile",
    NOT_NULL_VIOLATION: "invalid_profile",
    FOREIGN_KEY_VIOLATION: "account_not_found",
}


def _clean(value: Any) -> Optional[str]:
    s = str(value).strip() if value is not None else ""
    return s or None


def _level(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        level = int(value)
    except (TypeError, ValueError):
        raise ValidationError("invalid_level")
    if level <= 0:
        raise ValidationError("invalid_level")
    return level


def _insert_profile(conn: Any, sql: str, params: tuple, *, unique_code: str) -> None:
    """Insert a profile row. UNIQUE on user_id means the account already has one."""
    try:
        conn.execute(sql, params)
    except Exception as e:
        if not is_storage_error(e):
            raise
        kind = classify_storage_error(e)
        _debug(f"profile insert failed kind={kind}")
        if kind == UNIQUE_VIOLATION:
            if "user_id" in storage_error_target(e):
                raise RecordExistsError("profile_exists") from e
            raise RecordExistsError(unique_code) from e
        if kind in _PROFILE_ERROR_CODES:
            raise ValidationError(_PROFILE_ERROR_CODES[kind]) from e
        raise StorageError() from e


def get_student_profile(conn: Any, user_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT * FROM students WHERE user_id=?",
        (int(user_id),),
    ).fetchone()
    return dict(row) if row is not None else None


def create_student_profile(
    conn: Any,
    *,
    user_id: int,
    matric_no: Any,
    first_name: Any,
    last_name: Any,
    department: Any = None,
    level: Any = None,
) -> Dict[str, Any]:
    """Create the student row for an account. One profile per account."""
    matric, first, last = _clean(matric_no), _clean(first_name), _clean(last_name)
    if not matric or not first or not last:
        raise ValidationError("matric_no_first_name_last_name_required")

    if get_student_profile(conn, user_id) is not None:
        raise RecordExistsError("profile_exists")

    _insert_profile(
        conn,
        """
        INSERT INTO students (user_id, matric_no, first_name, last_name, department, level, created_at)
        VALUES (?,?,?,?,?,?,?)
        """,
        (int(user_id), matric.upper(), first, last, _clean(department), _level(level), utcnow_iso()),
        unique_code="matric_no_exists",
    )
    profile = get_student_profile(conn, user_id)
    assert profile is not None
    return profile


def get_lecturer_profile(conn: Any, user_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT * FROM lecturers WHERE user_id=?",
        (int(user_id),),
    ).fetchone()
    return dict(row) if row is not None else None


def create_lecturer_profile(
    conn: Any,
    *,
    user_id: int,
    staff_id: Any,
    first_name: Any,
    last_name: Any,
    department: Any = None,
) -> Dict[str, Any]:
    staff, first, last = _clean(staff_id), _clean(first_name), _clean(last_name)
    if not staff or not first or not last:
        raise ValidationError("staff_id_first_name_last_name_required")

    if get_lecturer_profile(conn, user_id) is not None:
        raise RecordExistsError("profile_exists")

    _insert_profile(
        conn,
        """
        INSERT INTO lecturers (user_id, staff_id, first_name, last_name, department, created_at)
        VALUES (?,?,?,?,?,?)
        """,
        (int(user_id), staff.upper(), first, last, _clean(department), utcnow_iso()),
        unique_code="staff_id_exists",
    )
    profile = get_lecturer_profile(conn, user_id)
    assert profile is not None
    return profile


def require_student_profile(conn: Any, user_id: int) -> Dict[str, Any]:
    profile = get_student_profile(conn, user_id)
    if profile is None:
        raise NotFoundError("profile_not_found")
    return profile


def require_lecturer_profile(conn: Any, user_id: int) -> Dict[str, Any]:
    profile = get_lecturer_profile(conn, user_id)
    if profile is None:
        raise NotFoundError("profile_not_found")
    return profile
