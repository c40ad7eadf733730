"""API routes for the status feed.

Endpoints:
  GET  /api/status   — latest result per target + overall verdict (store read only)
  POST /api/run-now  — run a full check cycle, then acknowledge
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

status_router = APIRouter()


@status_router.get("/status")
def get_status(request: Request) -> JSONResponse:
    """Current status of every registered target, in registry order."""
    registry = request.app.state.registry
    store = request.app.state.store
    max_age = request.app.state.settings.status_cache_max_age

    payload = store.snapshot(registry.targets)
    return JSONResponse(
        payload,
        headers={"cache-control": f"public, max-age={max_age}"},
    )


@status_router.post("/run-now")
async def run_now(request: Request) -> dict[str, Any]:
    """Run the check cycle immediately, bypassing the schedule."""
    checker = request.app.state.checker
    report = await checker.run_cycle()
    logger.info("Manual check cycle: %s", report.verdict.overall.value)
    return {"ok": True}
