# backend/app/services/auth_service.py
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt  # PyJWT
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.errors import Conflict, ValidationError
from ..models import AppUser
from .ownership import clean_phone
from .storage import storage_guard, transaction

log = logging.getLogger(__name__)

PBKDF2_ITERS = 210_000


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERS)
    return f"pbkdf2_sha256${PBKDF2_ITERS}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    parts = (stored or "").split("$", 3)
    if len(parts) != 4 or parts[0] != "pbkdf2_sha256" or not parts[1].isdigit():
        return False
    _, iters_s, salt_b64, dk_b64 = parts
    try:
        salt = base64.b64decode(salt_b64.encode(), validate=True)
        dk = base64.b64decode(dk_b64.encode(), validate=True)
    except ValueError:
        return False
    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iters_s))
    return hmac.compare_digest(test, dk)


def create_access_token(*, user_id: int, minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(minutes or settings.jwt_exp_minutes))).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises jwt.PyJWTError on a bad signature, malformed token or expiry."""
    return jwt.decode(token, settings.jwt_secret, algorithms=["HS256"], options={"require": ["sub", "exp"]})


def register_user(
    db: Session,
    *,
    phone_number: str,
    password: str,
    email: Optional[str] = None,
    nid: Optional[str] = None,
) -> AppUser:
    phone = clean_phone(phone_number)
    if len(password or "") < 6:
        raise ValidationError("password must be at least 6 characters")

    with transaction(db, "user register"):
        with storage_guard("user lookup"):
            existing = db.scalar(select(AppUser.id).where(AppUser.phone_number == phone))
        if existing is not None:
            raise Conflict("phone number already registered")

        now = datetime.utcnow()
        user = AppUser(
            phone_number=phone,
            email=(email or "").strip().lower() or None,
            nid=(nid or "").strip() or None,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        with storage_guard("user insert"):
            db.add(user)
            try:
                db.flush()
            except IntegrityError as e:
                raise Conflict("phone number already registered") from e

    log.info("user registered", extra={"user_id": user.id})
    return user


def authenticate(db: Session, *, phone_number: str, password: str) -> Optional[AppUser]:
    phone = (phone_number or "").strip()
    if not phone or not password:
        return None
    with storage_guard("login lookup"):
        user = db.scalar(select(AppUser).where(AppUser.phone_number == phone))
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user
