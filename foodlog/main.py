"""
Food log service — FastAPI application entry point.
Lifespan: create DB tables → verify connectivity → seed + load trigger catalog.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from cachetools import TTLCache
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from foodlog.config import settings
from foodlog.database import AsyncSessionLocal, check_db_connectivity, engine, init_db
from foodlog.exceptions import FoodLogError
from foodlog.routers import food_entries, health
from foodlog.services.food_entry_repo import FoodEntryRepository
from foodlog.services.trigger_catalog import seed_trigger_catalog

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan handler.
    1. Create all tables (idempotent — IF NOT EXISTS).
    2. Verify DB connectivity.
    3. Seed missing trigger names and load the trigger catalog.
    """
    logger.info("Starting food log service (env=%s)", settings.app_env)

    # Step 1: create tables
    await init_db()

    # Step 2: connectivity check
    ok = await check_db_connectivity()
    if not ok:
        logger.error("Database connectivity check FAILED at startup.")
    else:
        logger.info("Database connectivity verified.")

    # Step 3: trigger catalog
    async with AsyncSessionLocal() as session:
        app.state.trigger_catalog = await seed_trigger_catalog(FoodEntryRepository(session))
    app.state.trigger_cache = TTLCache(maxsize=2_000, ttl=settings.trigger_cache_ttl_seconds)
    if settings.use_stub_oracles:
        logger.warning("USE_STUB_ORACLES is on; predictions come from keyword rules.")

    yield

    logger.info("Shutting down food log service.")
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Food Log",
        description="Meal text to deduplicated dishes with food-sensitivity triggers.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────────────────────────

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ──────────────────────────────────────────────────────────────

    app.include_router(health.router)
    app.include_router(food_entries.router)

    # ── Exception handlers ───────────────────────────────────────────────────

    @app.exception_handler(FoodLogError)
    async def food_log_error_handler(request: Request, exc: FoodLogError) -> JSONResponse:
        """Render the error taxonomy with its status and machine-readable code."""
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Return a machine-readable error for any unhandled exception."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": "FOODLOG_UNAVAILABLE"},
        )

    return app


app = create_app()
