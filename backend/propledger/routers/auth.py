# backend/propledger/routers/auth.py
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import get_principal, hash_password, issue_token, verify_password
from ..config import settings
from ..db import get_db
from ..models import User
from ..schemas import LoginIn, PrincipalOut, RegisterIn, UserOut

log = logging.getLogger("propledger.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.jwt_cookie_name,
        token,
        httponly=True,
        secure=bool(settings.jwt_cookie_secure),
        samesite=str(settings.jwt_cookie_samesite),
        max_age=int(settings.jwt_exp_minutes) * 60,
        path="/",
    )


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    password = payload.password
    name = payload.name.strip()

    if not email or not password or not name:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if "@" not in email:
        raise HTTPException(status_code=400, detail="Invalid email address")
    if len(password) < int(settings.password_min_length):
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.password_min_length} characters",
        )

    existing = db.scalar(select(User).where(User.email == email))
    if existing:
        raise HTTPException(status_code=400, detail="User already exists")

    u = User(email=email, name=name, password_hash=hash_password(password), role="user", created_at=datetime.utcnow())
    db.add(u)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User already exists")
    db.refresh(u)

    log.info("user registered", extra={"user_id": int(u.id)})
    return u


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="email and password are required")

    user = db.scalar(select(User).where(User.email == email))
    if user is None or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(payload.password, str(user.password_hash)):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = issue_token(int(user.id))
    _set_session_cookie(response, token)
    return {"ok": True, "user_id": int(user.id), "token": token}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.jwt_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=PrincipalOut)
def me(p=Depends(get_principal)):
    return PrincipalOut(user_id=p.user_id, email=p.email, role=p.role)
