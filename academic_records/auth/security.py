from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from academic_records.util.time import utcnow


_JWT_ALG = "HS256"
DEFAULT_HASH_ROUNDS = 29000

# passlib refuses longer secrets (passlib.utils.MAX_PASSWORD_SIZE).
MAX_PASSWORD_BYTES = 4096


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """Salted one-way password hashing (passlib pbkdf2_sha256).

    ``rounds`` only applies to new hashes; verification reads the cost stored
    in each hash, so lowering it in tests never breaks existing rows.
    """

    def __init__(self, rounds: int = DEFAULT_HASH_ROUNDS):
        self.rounds = max(1, int(rounds))
        self._ctx = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__default_rounds=self.rounds,
        )
        # Checked against unknown emails so a miss costs the same as a wrong password.
        self._dummy_hash = self._ctx.hash("unknown-account")

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("password_blank")
        return self._ctx.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return self._ctx.verify(password, password_hash)
        except ValueError:
            # Not a hash this context recognizes.
            return False

    def verify_dummy(self, password: str) -> bool:
        """Spend one verify on a fixed hash. Always False."""
        self.verify(password, self._dummy_hash)
        return False


def create_access_token(
    *,
    secret: str,
    account_id: int,
    role: str,
    expires_minutes: int,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    now = utcnow()
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(account_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises jwt.InvalidTokenError subclasses."""
    if not token:
        raise jwt.InvalidTokenError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(
        token,
        secret,
        algorithms=[_JWT_ALG],
        options={"require": ["sub", "exp"]},
    )
