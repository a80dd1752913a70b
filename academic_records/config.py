import os
from dataclasses import dataclass
from typing import Optional

# Load a local .env file if present.
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Provide secrets via environment variables or a .env file.
    The instance is created once at startup and handed to the app; tests build
    their own with `dataclasses.replace`.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set RECORDS_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: RECORDS_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("RECORDS_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("RECORDS_DB_PATH", "./academic_records.sqlite")
    )

    # -----------------
    # Auth (JWT + password hashing)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours

    # pbkdf2_sha256 iteration count for new hashes. Existing hashes keep their own.
    AUTH_HASH_ROUNDS: int = int(os.environ.get("AUTH_HASH_ROUNDS", "29000"))

    # Bootstrap first admin account if the users table is empty.
    # Set either value to an empty string to disable.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL", "admin@example.com")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD", "")

    # -----------------
    # API
    # -----------------
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", os.environ.get("PORT", "8000")))

    # Comma-separated origins. Empty disables CORS.
    CORS_ALLOW_ORIGINS: str = os.environ.get("CORS_ALLOW_ORIGINS", "")

    # Print request-level auth decisions (token rejections, role denials).
    AUTH_DEBUG: bool = _env_bool("AUTH_DEBUG", True) is True


def load_config() -> Config:
    return Config()
