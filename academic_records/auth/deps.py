from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from academic_records.config import Config
from academic_records.errors import ForbiddenError, MissingTokenError, TokenError
from academic_records.models import Identity

from .gate import authenticate, authorize
from .security import PasswordHasher


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


# auto_error=False so a missing or non-Bearer header reaches our own 401.
_bearer = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_hasher(request: Request) -> PasswordHasher:
    hasher = getattr(request.app.state, "hasher", None)
    if hasher is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return hasher


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
) -> Identity:
    """Authenticate a request from its `Authorization: Bearer <jwt>` header.

    Missing and invalid tokens raise different errors so the reason shows up
    in the log line, but the API renders both as the same 401.
    """
    try:
        if credentials is None:
            header = (request.headers.get("Authorization") or "").strip()
            raise MissingTokenError("malformed_header" if header else "missing_token")
        return authenticate(credentials.credentials, secret=cfg.AUTH_JWT_SECRET)
    except TokenError as e:
        if cfg.AUTH_DEBUG:
            _debug(f"{request.method} {request.url.path} rejected: {type(e).__name__} reason={e.reason}")
        raise


def require_role(role: str) -> Callable[..., Identity]:
    """Dependency factory: admit only identities whose role is exactly `role`."""

    def _require(
        request: Request,
        identity: Identity = Depends(get_identity),
        cfg: Config = Depends(get_config),
    ) -> Identity:
        try:
            authorize(identity, role)
        except ForbiddenError:
            if cfg.AUTH_DEBUG:
                _debug(
                    f"{request.method} {request.url.path} forbidden: id={identity.id} "
                    f"role={identity.role} required={role}"
                )
            raise
        return identity

    _require.__name__ = f"require_{role}"
    return _require


require_student = require_role("student")
require_lecturer = require_role("lecturer")
require_admin = require_role("admin")
