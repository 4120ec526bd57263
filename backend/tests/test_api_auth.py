# backend/tests/test_api_auth.py
from __future__ import annotations

import hashlib
import hmac

import pytest

from propledger.auth import _b64
from propledger.config import Settings, settings


def test_register_login_me(client):
    r = client.post(
        "/api/auth/register",
        json={"email": "Landlord@Example.com", "password": "hunter22", "name": "Lee"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["email"] == "landlord@example.com"

    r = client.post("/api/auth/login", json={"email": "landlord@example.com", "password": "hunter22"})
    assert r.status_code == 200
    token = r.json()["token"]
    assert token

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "landlord@example.com"


def test_register_rules(client):
    r = client.post("/api/auth/register", json={"email": "a@b.co", "password": "12345", "name": "A"})
    assert r.status_code == 400
    assert "at least 6" in r.json()["detail"]

    r = client.post("/api/auth/register", json={"email": "a@b.co", "password": "123456", "name": "A"})
    assert r.status_code == 201

    r = client.post("/api/auth/register", json={"email": "A@B.co", "password": "123456", "name": "A"})
    assert r.status_code == 400
    assert r.json()["detail"] == "User already exists"


def test_bad_credentials(client):
    client.post("/api/auth/register", json={"email": "c@d.co", "password": "secret1", "name": "C"})
    r = client.post("/api/auth/login", json={"email": "c@d.co", "password": "wrong!!"})
    assert r.status_code == 401


def test_tampered_token_is_rejected(client):
    client.post("/api/auth/register", json={"email": "e@f.co", "password": "secret1", "name": "E"})
    token = client.post("/api/auth/login", json={"email": "e@f.co", "password": "secret1"}).json()["token"]
    client.cookies.clear()

    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token[:-2]}xx"})
    assert r.status_code == 401


def test_request_id_is_echoed(client, owner_headers):
    r = client.get("/api/health", headers={**owner_headers, "X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.headers["X-Request-ID"] == "abc-123"


def _signed(payload_json: str) -> str:
    header_b = _b64(b'{"alg":"HS256","typ":"JWT"}')
    payload_b = _b64(payload_json.encode())
    sig = hmac.new(settings.jwt_secret.encode(), f"{header_b}.{payload_b}".encode(), hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


@pytest.mark.parametrize("payload_json", ["[]", '"sub"', '{"sub": "1", "exp": "soon"}'])
def test_signed_but_malformed_claims_are_unauthorized(client, payload_json):
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {_signed(payload_json)}"})
    assert r.status_code == 401


def test_prod_requires_a_real_jwt_secret():
    base = {"app_env": "prod", "auth_mode": "jwt", "cors_allow_origins": ["https://app.example.com"]}

    with pytest.raises(ValueError):
        Settings(**base, jwt_secret="dev-change-me")

    assert Settings(**base, jwt_secret="a-long-random-secret").jwt_secret == "a-long-random-secret"
