from __future__ import annotations

import dataclasses

import pytest
from fastapi.testclient import TestClient

from academic_records.api.server import create_app
from academic_records.auth.security import PasswordHasher
from academic_records.config import Config, load_config
from academic_records.db import connect, init_db

from helpers import SECRET


@pytest.fixture
def cfg(tmp_path) -> Config:
    return dataclasses.replace(
        load_config(),
        DB_DSN=str(tmp_path / "records.sqlite"),
        AUTH_JWT_SECRET=SECRET,
        # Cheap hashes keep the suite fast.
        AUTH_HASH_ROUNDS=1000,
        AUTH_BOOTSTRAP_ADMIN_EMAIL="",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="",
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def hasher(cfg: Config) -> PasswordHasher:
    return PasswordHasher(rounds=cfg.AUTH_HASH_ROUNDS)


@pytest.fixture
def conn(cfg: Config):
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as c:
        yield c


@pytest.fixture
def client(cfg: Config):
    with TestClient(create_app(cfg)) as c:
        yield c

