"""Error taxonomy for accounts, tokens and records.

Every error carries a short machine-readable ``code``. HTTP status codes are
assigned in the API layer, not here.
"""

from __future__ import annotations


class RecordsError(Exception):
    code = "error"

    def __init__(self, code: str | None = None):
        if code:
            self.code = code
        super().__init__(self.code)


class ValidationError(RecordsError):
    """Missing or malformed input."""

    code = "validation_error"


class RecordExistsError(RecordsError):
    """A uniqueness constraint rejected the write."""

    code = "record_exists"


class DuplicateEmailError(RecordExistsError):
    code = "email_exists"


class NotFoundError(RecordsError):
    code = "not_found"


class AuthFailure(RecordsError):
    """Bad credentials. Unknown email and wrong password look the same."""

    code = "invalid_credentials"


class TokenError(RecordsError):
    """Base for bearer-token failures.

    ``reason`` is for logs only. Clients see a single unauthorized response.
    """

    code = "unauthorized"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__()


class MissingTokenError(TokenError):
    pass


class InvalidTokenError(TokenError):
    pass


class ForbiddenError(RecordsError):
    code = "forbidden"

    def __init__(self, required_role: str, actual_role: str):
        self.required_role = required_role
        self.actual_role = actual_role
        super().__init__(f"{required_role}_role_required")


class StorageError(RecordsError):
    """Any persistence failure that is not a constraint we interpret."""

    code = "storage_error"
