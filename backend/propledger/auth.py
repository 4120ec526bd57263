# backend/propledger/auth.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import User


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str
    role: str = "user"


# -------------------------
# Password hashing
# -------------------------
_PBKDF2_ROUNDS = 120_000


def hash_password(password: str) -> str:
    salt = base64.urlsafe_b64encode(os.urandom(12))
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${salt.decode()}${base64.urlsafe_b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, salt_s, hash_s = stored.split("$", 2)
    except ValueError:
        return False
    if algo != "pbkdf2_sha256":
        return False
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt_s.encode(), _PBKDF2_ROUNDS)
    return hmac.compare_digest(base64.urlsafe_b64encode(dk).decode(), hash_s)


# -------------------------
# JWT helpers (HS256)
# -------------------------
def _b64(x: bytes) -> str:
    return base64.urlsafe_b64encode(x).decode().rstrip("=")


def _ub64(s: str) -> bytes:
    return base64.urlsafe_b64decode((s + "=" * (-len(s) % 4)).encode())


def jwt_sign(payload: dict[str, Any]) -> str:
    header_b = _b64(json.dumps({"alg": "HS256", "typ": "JWT"}, separators=(",", ":")).encode())
    payload_b = _b64(json.dumps(payload, separators=(",", ":")).encode())
    msg = f"{header_b}.{payload_b}".encode()
    sig = hmac.new(settings.jwt_secret.encode(), msg, hashlib.sha256).digest()
    return f"{header_b}.{payload_b}.{_b64(sig)}"


def jwt_verify(token: str) -> dict[str, Any]:
    try:
        header_b, payload_b, sig_b = token.split(".", 2)
        sig = _ub64(sig_b)
        payload = json.loads(_ub64(payload_b).decode())
    except (ValueError, UnicodeDecodeError):
        raise HTTPException(status_code=401, detail="Invalid token")

    expected = hmac.new(settings.jwt_secret.encode(), f"{header_b}.{payload_b}".encode(), hashlib.sha256).digest()
    if not hmac.compare_digest(sig, expected):
        raise HTTPException(status_code=401, detail="Invalid token signature")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=401, detail="Invalid token")

    exp = payload.get("exp")
    if exp is not None and not isinstance(exp, (int, float)):
        raise HTTPException(status_code=401, detail="Invalid token")
    if exp is not None and int(exp) < int(datetime.utcnow().timestamp()):
        raise HTTPException(status_code=401, detail="Token expired")
    return dict(payload)


def issue_token(user_id: int) -> str:
    exp = int((datetime.utcnow() + timedelta(minutes=int(settings.jwt_exp_minutes))).timestamp())
    return jwt_sign({"sub": str(user_id), "exp": exp})


# -------------------------
# get_principal
# -------------------------
def _principal(user: User) -> Principal:
    return Principal(user_id=int(user.id), email=str(user.email), role=str(user.role or "user"))


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) JWT cookie (HttpOnly) OR Authorization: Bearer <token>
      2) dev header X-User-Email (ONLY if settings.auth_mode == "dev")
    """
    token = request.cookies.get(settings.jwt_cookie_name) if settings.jwt_cookie_name else None
    if not token and authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = jwt_verify(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")

        user = db.get(User, int(sub))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return _principal(user)

    if settings.auth_mode == "dev":
        email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
        if not email:
            raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email} for dev auth")

        user = db.scalar(select(User).where(User.email == email))
        if user is None and settings.dev_auto_provision:
            user = User(email=email, name=email.split("@")[0], role="user", created_at=datetime.utcnow())
            db.add(user)
            db.commit()
            db.refresh(user)

        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return _principal(user)

    raise HTTPException(status_code=401, detail="Not authenticated")
