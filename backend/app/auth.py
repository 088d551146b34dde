# backend/app/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser
from .services.auth_service import create_access_token, decode_access_token
from .services.storage import storage_guard


@dataclass(frozen=True)
class Principal:
    user_id: int
    phone_number: str


def issue_session_cookie(response: Response, *, user_id: int) -> str:
    token = create_access_token(user_id=user_id)
    response.set_cookie(
        settings.jwt_cookie_name,
        token,
        httponly=True,
        secure=bool(settings.jwt_cookie_secure),
        samesite=str(settings.jwt_cookie_samesite),
        max_age=int(settings.jwt_exp_minutes) * 60,
        path="/",
    )
    return token


def _subject_from_token(token: str) -> str:
    try:
        claims = decode_access_token(token)
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(status_code=401, detail="Token expired") from e
    except jwt.PyJWTError as e:
        raise HTTPException(status_code=401, detail="Invalid token") from e
    return str(claims.get("sub") or "")


# -------------------------
# get_principal
# -------------------------
def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) JWT cookie (HttpOnly) OR Authorization: Bearer <token>
      2) dev header X-User-Id (ONLY if settings.auth_mode == "dev")

    The resolved id is what every workflow call receives as caller_id.
    """
    token = request.cookies.get(settings.jwt_cookie_name) if settings.jwt_cookie_name else None
    if not token and authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        raw_id = _subject_from_token(token)
    elif settings.auth_mode == "dev":
        raw_id = (request.headers.get(settings.dev_header_user_id) or "").strip()
        if not raw_id:
            raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_id} for dev auth")
    else:
        raise HTTPException(status_code=401, detail="Not authenticated")

    if not raw_id.isdigit():
        raise HTTPException(status_code=401, detail="Malformed user id")

    with storage_guard("principal lookup"):
        user = db.scalar(select(AppUser).where(AppUser.id == int(raw_id)))
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return Principal(user_id=int(user.id), phone_number=str(user.phone_number))
