# backend/app/routers/metrics.py
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ..services.runtime_metrics import METRICS

router = APIRouter(prefix="/metrics", tags=["ops"])


@router.get("", response_class=PlainTextResponse)
def metrics() -> str:
    return METRICS.render()
