# backend/app/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, issue_session_cookie
from ..config import settings
from ..db import get_db
from ..schemas import LoginIn, LoginOut, RegisterIn, UserOut
from ..services.auth_service import authenticate, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserOut)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    """Create an account keyed by phone number and log it in."""
    user = register_user(
        db,
        phone_number=payload.phone_number,
        password=payload.password,
        email=payload.email,
        nid=payload.nid,
    )
    issue_session_cookie(response, user_id=int(user.id))
    return user


@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    user = authenticate(db, phone_number=payload.phone_number, password=payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = issue_session_cookie(response, user_id=int(user.id))
    return LoginOut(user_id=int(user.id), token=token)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.jwt_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(p: Principal = Depends(get_principal)):
    return UserOut(id=p.user_id, phone_number=p.phone_number)
