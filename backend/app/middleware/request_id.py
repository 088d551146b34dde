# backend/app/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# client-supplied ids end up in JSON logs and audit rows
_SAFE_ID = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def new_request_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex}"


@contextmanager
def request_id_scope(rid: Optional[str] = None) -> Iterator[str]:
    """Binds an id outside HTTP (reminder runs, CLI, Celery tasks)."""
    rid = rid or new_request_id()
    token = request_id_ctx.set(rid)
    try:
        yield rid
    finally:
        request_id_ctx.reset(token)


def accept_client_id(raw: Optional[str]) -> Optional[str]:
    if raw and _SAFE_ID.fullmatch(raw):
        return raw
    return None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Echoes a usable incoming X-Request-ID, or mints one, and exposes it through
    the ContextVar (logs, audit rows, error envelopes) and request.state.
    """

    header = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = accept_client_id(request.headers.get(self.header)) or new_request_id()
        request.state.request_id = rid
        with request_id_scope(rid):
            resp = await call_next(request)
        resp.headers[self.header] = rid
        return resp
