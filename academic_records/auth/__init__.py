"""Authentication / authorization.

Kept deliberately small:

- Users table (email/password hash + role)
- JWT access tokens sent as `Authorization: Bearer <token>`
- Exact role checks on protected routes (admin is not a superset of
  student or lecturer)
"""

from .crud import bootstrap_admin_if_needed, register, verify_credentials
from .deps import get_identity, require_admin, require_lecturer, require_role, require_student
from .gate import authenticate, authorize, issue_token

__all__ = [
    "authenticate",
    "authorize",
    "bootstrap_admin_if_needed",
    "get_identity",
    "issue_token",
    "register",
    "require_admin",
    "require_lecturer",
    "require_role",
    "require_student",
    "verify_credentials",
]
