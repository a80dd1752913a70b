from __future__ import annotations

from typing import Dict

from fastapi.testclient import TestClient


SECRET = "test-secret-0123456789abcdef-0123456789abcdef"


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_and_login(client: TestClient, email: str, password: str, role: str) -> str:
    r = client.post("/auth/register", json={"email": email, "password": password, "role": role})
    assert r.status_code == 201, r.text
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["token"]
