"""FastAPI server for the status feed."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from statuspage import __version__
from statuspage.api.status_routes import status_router
from statuspage.config import Settings, settings
from statuspage.health.checker import StatusChecker
from statuspage.health.scheduler import CycleScheduler
from statuspage.health.store import open_store
from statuspage.targets.registry import TargetRegistry

logger = logging.getLogger(__name__)

FALLBACK_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


# ── CORS middleware ──────────────────────────────────────────────────────────


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Attach CORS headers to every response and answer preflights directly.

    Preflights get an empty 200 without reaching any route, so they never
    touch the store.
    """

    def __init__(self, app: ASGIApp, allow_origin: str = "*") -> None:
        super().__init__(app)
        self.headers = {
            "access-control-allow-origin": allow_origin,
            "access-control-allow-methods": "GET,POST,OPTIONS",
            "access-control-allow-headers": "content-type,authorization",
        }

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=self.headers)

        response = await call_next(request)
        response.headers.update(self.headers)
        return response


# ── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire registry, store, checker and scheduler; keep anything preset on app.state."""
    cfg: Settings = app.state.settings
    state = app.state

    if getattr(state, "registry", None) is None:
        registry = TargetRegistry(path=Path(cfg.targets_file))
        registry.load()
        state.registry = registry

    owns_store = getattr(state, "store", None) is None
    if owns_store:
        state.store = open_store(cfg)

    if getattr(state, "checker", None) is None:
        state.checker = StatusChecker.from_settings(cfg, state.registry, state.store)

    scheduler = None
    if cfg.scheduler_enabled:
        scheduler = CycleScheduler(
            state.checker,
            interval_seconds=cfg.check_interval_seconds,
            run_on_start=cfg.run_on_start,
        )
        await scheduler.start()
    state.scheduler = scheduler

    yield

    # Shutdown
    if scheduler is not None:
        await scheduler.stop()
    if owns_store:
        state.store.close()


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or settings
    app = FastAPI(
        title="Status Page API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg

    app.add_middleware(CORSHeadersMiddleware, allow_origin=cfg.cors_allow_origin)
    app.include_router(status_router, prefix="/api")

    # Anything unrouted is a liveness check
    @app.api_route("/{path:path}", methods=FALLBACK_METHODS, include_in_schema=False)
    async def fallback(path: str) -> PlainTextResponse:
        return PlainTextResponse("OK")

    return app


app = create_app()
