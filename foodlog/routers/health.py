"""Liveness and readiness probes for the load balancer."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from foodlog.config import settings
from foodlog.database import check_db_connectivity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Liveness probe — returns 200 if the process is running."""
    return {"status": "ok", "version": "1.0.0"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """
    Readiness probe. The service can take food entries once the store answers
    and the trigger catalog is loaded; oracles are not probed, since their
    failures degrade instead of failing a request.

    200 → {"db": "ok", "trigger_catalog": "ok", "triggers": 18, "oracles": "<mode>"}
    503 → same shape with the failing component marked "error".
    """
    db_ok = await check_db_connectivity()

    catalog = getattr(request.app.state, "trigger_catalog", None)
    trigger_count = len(catalog) if catalog is not None else 0
    if not trigger_count:
        logger.warning("Readiness check: trigger catalog not loaded.")

    body = {
        "db": "ok" if db_ok else "error",
        "trigger_catalog": "ok" if trigger_count else "error",
        "triggers": trigger_count,
        "oracles": "stub" if settings.use_stub_oracles else settings.llm_model,
    }
    return JSONResponse(content=body, status_code=200 if db_ok and trigger_count else 503)
