from __future__ import annotations

import logging

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas.auth import LoginRequest
from ..schemas.user import UserDetail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _require_user(request: Request) -> dict:
    user = request.session.get("user")
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def current_user(request: Request, db: Session = Depends(get_db)) -> User:
    session_user = _require_user(request)
    user = db.query(User).filter(User.id == session_user["id"]).one_or_none()
    if not user or not user.is_active:
        request.session.clear()
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


@router.post("/login")
async def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).one_or_none()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    request.session["user"] = {
        "id": user.id,
        "org_id": user.org_id,
        "role": user.role,
        "full_name": user.full_name,
        "timezone": user.timezone,
    }
    return JSONResponse({"status": "logged_in", "user": UserDetail.model_validate(user).model_dump(mode="json")})


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return JSONResponse({"status": "logged_out"})


@router.get("/me", response_model=UserDetail)
async def me(user: User = Depends(current_user)):
    return user
