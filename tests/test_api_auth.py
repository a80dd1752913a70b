from __future__ import annotations

import dataclasses
import time

import jwt
from fastapi.testclient import TestClient

from academic_records.api.server import create_app
from academic_records.auth.security import MAX_PASSWORD_BYTES
from academic_records.config import load_config

from helpers import SECRET, bearer, register_and_login


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").status_code == 200


def test_end_to_end_student_flow(client):
    r = client.post("/auth/register", json={"email": "a@x.com", "password": "pw123", "role": "student"})
    assert r.status_code == 201
    body = r.json()
    assert body == {"id": body["id"], "email": "a@x.com", "role": "student"}

    r = client.post("/auth/login", json={"email": "a@x.com", "password": "pw123"})
    assert r.status_code == 200
    login = r.json()
    assert login["id"] == body["id"]
    assert login["email"] == "a@x.com"
    assert login["role"] == "student"
    assert login["token_type"] == "bearer"
    token = login["token"]

    # No profile yet, but the gate admits the request.
    r = client.get("/students/profile", headers=bearer(token))
    assert r.status_code == 404
    assert r.json() == {"error": "profile_not_found"}

    r = client.post(
        "/students/profile",
        headers=bearer(token),
        json={"matric_no": "csc/2020/001", "first_name": "Ada", "last_name": "Obi", "level": 200},
    )
    assert r.status_code == 201

    r = client.get("/students/profile", headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["matric_no"] == "CSC/2020/001"

    # Same token on a lecturer-only route.
    r = client.get("/lecturers/profile", headers=bearer(token))
    assert r.status_code == 403
    assert r.json() == {"error": "lecturer_role_required"}

    # No token at all.
    r = client.get("/students/profile")
    assert r.status_code == 401
    assert r.json() == {"error": "unauthorized"}
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_register_never_returns_password_hash(client):
    r = client.post("/auth/register", json={"email": "a@x.com", "password": "pw123", "role": "lecturer"})
    assert "password_hash" not in r.json()
    assert "pw123" not in r.text

    r = client.post("/auth/login", json={"email": "a@x.com", "password": "pw123"})
    assert "password_hash" not in r.json()


def test_register_duplicate_email(client):
    payload = {"email": "a@x.com", "password": "pw123", "role": "student"}
    assert client.post("/auth/register", json=payload).status_code == 201

    r = client.post("/auth/register", json={**payload, "email": "A@x.com", "role": "admin"})
    assert r.status_code == 400
    assert r.json() == {"error": "email_exists"}

    r = client.post("/auth/login", json={"email": "a@x.com", "password": "pw123"})
    assert r.json()["role"] == "student"


def test_register_validation_errors(client):
    r = client.post("/auth/register", json={"email": "a@x.com", "password": "pw123"})
    assert r.status_code == 400
    assert r.json() == {"error": "all_fields_required"}

    r = client.post("/auth/register", json={"email": "a@x.com", "password": "pw123", "role": "dean"})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid_role"}

    r = client.post(
        "/auth/register",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "validation_error"}

    r = client.post("/auth/register", json={"email": ["a@x.com"], "password": "pw", "role": "student"})
    assert r.status_code == 400
    assert r.json() == {"error": "validation_error"}


def test_login_failures_are_indistinguishable(client):
    register_and_login(client, "a@x.com", "pw123", "student")

    wrong_pw = client.post("/auth/login", json={"email": "a@x.com", "password": "nope"})
    unknown = client.post("/auth/login", json={"email": "b@x.com", "password": "pw123"})
    missing = client.post("/auth/login", json={})

    for r in (wrong_pw, unknown, missing):
        assert r.status_code == 401
        assert r.json() == {"error": "invalid_credentials"}


def test_invalid_and_missing_tokens_share_response(client, cfg):
    token = register_and_login(client, "a@x.com", "pw123", "student")

    now = int(time.time())
    expired = jwt.encode(
        {"sub": "1", "role": "student", "iat": now - 7200, "exp": now - 3600},
        cfg.AUTH_JWT_SECRET,
        algorithm="HS256",
    )
    foreign = jwt.encode(
        {"sub": "1", "role": "student", "iat": now, "exp": now + 3600},
        "someone-elses-secret-0123456789abcdef",
        algorithm="HS256",
    )

    cases = [
        {},
        {"Authorization": ""},
        {"Authorization": token},
        {"Authorization": "Bearer"},
        {"Authorization": f"Basic {token}"},
        bearer(token[:-4] + "AAAA"),
        bearer(expired),
        bearer(foreign),
    ]
    for headers in cases:
        r = client.get("/auth/me", headers=headers)
        assert r.status_code == 401, headers
        assert r.json() == {"error": "unauthorized"}


def test_bearer_scheme_is_case_insensitive(client):
    token = register_and_login(client, "a@x.com", "pw123", "student")
    r = client.get("/auth/me", headers={"Authorization": f"bearer {token}"})
    assert r.status_code == 200


def test_openapi_declares_bearer_scheme(cfg):
    schema = create_app(cfg).openapi()
    assert schema["components"]["securitySchemes"]["HTTPBearer"]["scheme"] == "bearer"
    assert {"HTTPBearer": []} in schema["paths"]["/auth/me"]["get"]["security"]


def test_auth_me(client):
    token = register_and_login(client, "Me@X.com", "pw123", "lecturer")
    r = client.get("/auth/me", headers=bearer(token))
    assert r.status_code == 200
    assert r.json()["email"] == "me@x.com"
    assert r.json()["role"] == "lecturer"


def test_token_from_one_app_rejected_by_app_with_other_secret(client, cfg):
    token = register_and_login(client, "a@x.com", "pw123", "student")

    other_cfg = dataclasses.replace(cfg, AUTH_JWT_SECRET="rotated-" + SECRET)
    with TestClient(create_app(other_cfg)) as other:
        r = other.get("/auth/me", headers=bearer(token))
    assert r.status_code == 401


def test_admin_routes_are_admin_only(client, cfg):
    boot_cfg = dataclasses.replace(
        cfg,
        AUTH_BOOTSTRAP_ADMIN_EMAIL="root@x.com",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="rootpw",
    )
    student_token = register_and_login(client, "s@x.com", "pw", "student")

    # Users table is not empty, so bootstrap does nothing here.
    with TestClient(create_app(boot_cfg)) as app_client:
        r = app_client.post("/auth/login", json={"email": "root@x.com", "password": "rootpw"})
        assert r.status_code == 401

        r = app_client.get("/admin/users", headers=bearer(student_token))
        assert r.status_code == 403
        assert r.json() == {"error": "admin_role_required"}


def test_admin_can_create_and_list_accounts(tmp_path, cfg):
    boot_cfg = dataclasses.replace(
        cfg,
        DB_DSN=str(tmp_path / "admin.sqlite"),
        AUTH_BOOTSTRAP_ADMIN_EMAIL="root@x.com",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="rootpw",
    )
    with TestClient(create_app(boot_cfg)) as c:
        r = c.post("/auth/login", json={"email": "root@x.com", "password": "rootpw"})
        assert r.status_code == 200
        admin_token = r.json()["token"]

        r = c.post(
            "/admin/users",
            headers=bearer(admin_token),
            json={"email": "lec@x.com", "password": "pw", "role": "lecturer"},
        )
        assert r.status_code == 201
        assert r.json()["role"] == "lecturer"

        r = c.get("/admin/users", headers=bearer(admin_token), params={"role": "lecturer"})
        assert r.status_code == 200
        assert [u["email"] for u in r.json()["users"]] == ["lec@x.com"]

        r = c.get("/admin/users", headers=bearer(admin_token), params={"role": "dean"})
        assert r.status_code == 400

        # Admin is not a superset of the other roles.
        r = c.get("/students/profile", headers=bearer(admin_token))
        assert r.status_code == 403


def test_overlong_password_is_a_validation_error(client):
    password = "p" * 5000
    r = client.post("/auth/register", json={"email": "long@x.com", "password": password, "role": "student"})
    assert r.status_code == 400
    assert r.json() == {"error": "password_too_long"}

    r = client.post("/auth/login", json={"email": "long@x.com", "password": password})
    assert r.status_code == 401
    assert r.json() == {"error": "invalid_credentials"}


def test_password_at_the_limit_is_accepted(client):
    token = register_and_login(client, "edge@x.com", "p" * MAX_PASSWORD_BYTES, "student")
    assert client.get("/auth/me", headers=bearer(token)).status_code == 200


def test_default_token_lifetime_is_one_day(client, cfg):
    assert load_config().AUTH_TOKEN_EXPIRE_MINUTES == 1440
    assert cfg.AUTH_TOKEN_EXPIRE_MINUTES == 1440

    token = register_and_login(client, "a@x.com", "pw123", "student")
    claims = jwt.decode(token, cfg.AUTH_JWT_SECRET, algorithms=["HS256"])
    assert claims["exp"] - claims["iat"] == 24 * 60 * 60
