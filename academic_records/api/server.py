from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Tuple

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from academic_records import __version__
from academic_records.auth import bootstrap_admin_if_needed, issue_token, register, verify_credentials
from academic_records.auth.crud import get_account_by_id, list_accounts, public_account
from academic_records.auth.deps import (
    get_config,
    get_hasher,
    get_identity,
    require_admin,
    require_lecturer,
    require_student,
)
from academic_records.auth.security import PasswordHasher
from academic_records.config import Config, load_config
from academic_records.db import connect, init_db, is_storage_error
from academic_records.errors import (
    AuthFailure,
    ForbiddenError,
    NotFoundError,
    RecordExistsError,
    RecordsError,
    StorageError,
    TokenError,
    ValidationError,
)
from academic_records.models import Identity
from academic_records.records.profiles import (
    create_lecturer_profile,
    create_student_profile,
    require_lecturer_profile,
    require_student_profile,
)
from academic_records.schema import ROLES


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# Error type -> HTTP status. First match wins, so subclasses go first.
ERROR_STATUS: List[Tuple[type, int]] = [
    (ValidationError, 400),
    (RecordExistsError, 400),
    (AuthFailure, 401),
    (TokenError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (StorageError, 500),
]


def _status_for(exc: RecordsError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def _records_error_response(request: Request, exc: RecordsError) -> JSONResponse:
    status = _status_for(exc)
    if isinstance(exc, TokenError):
        # Missing and invalid tokens look the same to clients.
        return JSONResponse(
            status_code=status,
            content={"error": "unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if status >= 500:
        _debug(f"{request.method} {request.url.path} failed: {type(exc).__name__} code={exc.code}")
        return JSONResponse(status_code=status, content={"error": "internal_error"})
    return JSONResponse(status_code=status, content={"error": exc.code})


def _request_validation_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "validation_error"})


@contextmanager
def _db(cfg: Config) -> Iterator[Any]:
    """connect() for request handlers: driver errors surface as StorageError."""
    try:
        with connect(cfg.DB_DSN) as conn:
            yield conn
    except RecordsError:
        raise
    except Exception as e:
        if not is_storage_error(e):
            raise
        _debug(f"storage failure: {type(e).__name__}")
        raise StorageError() from e


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/")
def root() -> Dict[str, Any]:
    return {"status": "Academic records backend running", "version": __version__}


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------


class RegisterRequest(BaseModel):
    # Optional so missing fields come back as 400 all_fields_required.
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("/auth/register", status_code=201)
def auth_register(
    payload: RegisterRequest,
    cfg: Config = Depends(get_config),
    hasher: PasswordHasher = Depends(get_hasher),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return register(
            conn,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            hasher=hasher,
        )


@router.post("/auth/login")
def auth_login(
    payload: LoginRequest,
    cfg: Config = Depends(get_config),
    hasher: PasswordHasher = Depends(get_hasher),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        account = verify_credentials(conn, email=payload.email, password=payload.password, hasher=hasher)

    token = issue_token(
        account,
        secret=cfg.AUTH_JWT_SECRET,
        expires_minutes=cfg.AUTH_TOKEN_EXPIRE_MINUTES,
    )
    return {"token": token, "token_type": "bearer", **account}


@router.get("/auth/me")
def auth_me(
    identity: Identity = Depends(get_identity),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        row = get_account_by_id(conn, identity.id)
    if row is None:
        raise NotFoundError("account_not_found")
    return public_account(row)


# -----------------------------
# Admin
# -----------------------------


class CreateAccountRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = "student"


@router.post("/admin/users", status_code=201)
def admin_create_account(
    payload: CreateAccountRequest,
    _admin: Identity = Depends(require_admin),
    cfg: Config = Depends(get_config),
    hasher: PasswordHasher = Depends(get_hasher),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return register(
            conn,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            hasher=hasher,
        )


@router.get("/admin/users")
def admin_list_accounts(
    role: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    _admin: Identity = Depends(require_admin),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    if role is not None and role not in ROLES:
        raise ValidationError("invalid_role")
    with _db(cfg) as conn:
        return {"users": list_accounts(conn, role=role, limit=limit)}


# -----------------------------
# Profiles
# -----------------------------


class StudentProfileRequest(BaseModel):
    matric_no: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    level: Optional[int] = None


class LecturerProfileRequest(BaseModel):
    staff_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None


@router.post("/students/profile", status_code=201)
def create_student(
    payload: StudentProfileRequest,
    student: Identity = Depends(require_student),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return create_student_profile(
            conn,
            user_id=student.id,
            matric_no=payload.matric_no,
            first_name=payload.first_name,
            last_name=payload.last_name,
            department=payload.department,
            level=payload.level,
        )


@router.get("/students/profile")
def get_student(
    student: Identity = Depends(require_student),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return require_student_profile(conn, student.id)


@router.post("/lecturers/profile", status_code=201)
def create_lecturer(
    payload: LecturerProfileRequest,
    lecturer: Identity = Depends(require_lecturer),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return create_lecturer_profile(
            conn,
            user_id=lecturer.id,
            staff_id=payload.staff_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            department=payload.department,
        )


@router.get("/lecturers/profile")
def get_lecturer(
    lecturer: Identity = Depends(require_lecturer),
    cfg: Config = Depends(get_config),
) -> Dict[str, Any]:
    with _db(cfg) as conn:
        return require_lecturer_profile(conn, lecturer.id)


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Config | None = None) -> FastAPI:
    """Build the API around one Config.

    The config and password hasher live on `app.state`; request handlers reach
    them through dependencies, never through module globals.
    """
    cfg = cfg or load_config()
    hasher = PasswordHasher(rounds=cfg.AUTH_HASH_ROUNDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        init_db(cfg.DB_DSN)
        boot = bootstrap_admin_if_needed(cfg, hasher)
        if boot:
            _debug(f"Bootstrapped initial admin account: email={boot.get('email')} role={boot.get('role')}")
        yield

    app = FastAPI(title="Academic Records Backend", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.hasher = hasher

    # CORS is mainly needed for local development (separate frontend origin).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RecordsError, _records_error_response)
    app.add_exception_handler(RequestValidationError, _request_validation_response)
    app.include_router(router)
    return app


app = create_app()
