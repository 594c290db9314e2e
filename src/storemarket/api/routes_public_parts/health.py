from __future__ import annotations

import time
from typing import Any, Optional

from fastapi import APIRouter, Request

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _health_payload(request: Request) -> dict[str, object]:
    # health must never crash
    ex = getattr(request.app.state, "executor", None)

    market_id: Optional[str] = None
    height: Optional[int] = None
    if ex is not None:
        market_id = str(getattr(ex, "market_id", "") or "") or None
        h: Any = getattr(ex, "height", None)
        height = int(h) if isinstance(h, int) else None

    return {
        "ok": True,
        "service": "storemarket",
        "version": "v1",
        "ts_ms": _now_ms(),
        "market_id": market_id,
        "height": height,
        "executor_attached": ex is not None,
    }


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    return _health_payload(request)


@router.get("/readyz")
def readyz(request: Request) -> dict[str, object]:
    out = _health_payload(request)
    out["ok"] = bool(out["executor_attached"]) and bool(out["market_id"])
    return out
