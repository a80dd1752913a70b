"""Stateless bearer-token gate.

issue_token() signs {sub, role} with the configured secret. authenticate()
turns a bearer token back into an Identity without touching the
database, and authorize() is an exact role match (no hierarchy).
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import jwt

from academic_records.errors import ForbiddenError, InvalidTokenError, MissingTokenError
from academic_records.models import Identity
from academic_records.schema import ROLES

from .security import create_access_token, decode_access_token


def issue_token(account: Dict[str, Any], *, secret: str, expires_minutes: int) -> str:
    """Mint a token for an account that has already passed verify_credentials."""
    return create_access_token(
        secret=secret,
        account_id=int(account["id"]),
        role=str(account["role"]),
        expires_minutes=expires_minutes,
    )


def authenticate(token: Optional[str], *, secret: str) -> Identity:
    token = (token or "").strip()
    if not token:
        raise MissingTokenError("missing_token")

    try:
        payload = decode_access_token(token=token, secret=secret)
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("token_expired")
    except jwt.InvalidSignatureError:
        raise InvalidTokenError("token_bad_signature")
    except jwt.InvalidTokenError:
        raise InvalidTokenError("token_invalid")

    try:
        account_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise InvalidTokenError("token_missing_sub")

    role = payload.get("role")
    if role not in ROLES:
        raise InvalidTokenError("token_bad_role")

    return Identity(id=account_id, role=role)


def authorize(identity: Identity, required_role: str) -> None:
    if identity.role != required_role:
        raise ForbiddenError(required_role, identity.role)
