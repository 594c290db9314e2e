from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storemarket.api.config import load_api_config
from storemarket.api.errors import ApiError
from storemarket.api.routes_public import public_router
from storemarket.api.security import RequestSizeLimitMiddleware
from storemarket.api.structured_logging import RequestLogMiddleware
from storemarket.runtime.errors import MarketError
from storemarket.runtime.executor import MarketExecutor
from storemarket.runtime.market_logging import configure_structured_logging, log_event

_log = logging.getLogger("storemarket.http")


def build_executor() -> MarketExecutor:
    """Build a MarketExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `storemarket.api.app.build_executor`
    without reaching into runtime modules.
    """
    return MarketExecutor.from_env()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load market config + attach executor
      - False: keep lightweight; tests attach app.state.executor themselves

    Run with `python -m storemarket.api` or
    `uvicorn storemarket.api.app:create_app --factory`.
    """
    cfg = load_api_config()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        ex = getattr(app.state, "executor", None)
        log_event(
            _log,
            "api_start",
            mode=cfg.mode,
            market_id=getattr(ex, "market_id", None),
            height=getattr(ex, "height", None),
        )
        yield
        log_event(_log, "api_stop", mode=cfg.mode)

    # Disable docs in production.
    if cfg.mode == "prod":
        app = FastAPI(
            title="Storage Market API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="Storage Market API", lifespan=_lifespan)

    app.state.cfg = cfg

    if boot_runtime:
        configure_structured_logging()
        app.state.executor = build_executor()
    else:
        app.state.executor = None

    @app.exception_handler(ApiError)
    async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(MarketError)
    async def _market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
        err = ApiError.from_market_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    # --- Middleware ---
    # Added last runs first: request log wraps the size limiter.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware, caller_header=cfg.caller_header)

    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", cfg.caller_header],
        )

    app.include_router(public_router)

    return app
