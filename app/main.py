# app/main.py

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, settings

from app.core.database import connect_to_mongo, close_mongo_connection, ensure_indexes

from app.api import (
    aggregates,
    auth,
    contracts,
    display_data,
    feature_flags,
    meters,
    projections,
    readings,
)
from app.repositories.feature_flags import FeatureFlagRepository
from app.services.feature_flags import FeatureFlagService

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if getattr(settings, "DEBUG", False) else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
async def startup(state, cfg: Settings) -> None:
    """
    Open the database and prepare collections. Runs once per process;
    state.initialized guards repeated calls.
    """
    if getattr(state, "initialized", False):
        return

    logger.info("Starting Energy Tracker API...")

    state.mongo_client, state.db = await connect_to_mongo(cfg)

    try:
        await ensure_indexes(state.db)
    except Exception as e:
        logger.warning(f"Index creation failed: {e}")

    flags = FeatureFlagService(FeatureFlagRepository(state.db), cfg)
    created = await flags.initialize_backend_flags()
    logger.info(f"Backend flags ready ({created} created)")

    state.initialized = True
    logger.info(f"Startup complete. ENV={getattr(cfg, 'ENVIRONMENT', 'unknown')}")


async def shutdown(state) -> None:
    try:
        await close_mongo_connection(getattr(state, "mongo_client", None))
    except Exception as e:
        logger.warning(f"Mongo close failed: {e}")

    state.mongo_client = None
    state.db = None
    state.initialized = False
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
def _build_cors_origins(cfg: Settings) -> List[str]:
    origins = [
        # Local dev
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    if getattr(cfg, "FRONTEND_URL", None):
        origins.append(str(cfg.FRONTEND_URL).strip().rstrip("/"))

    for o in cfg.get_cors_origins() or []:
        o = (o or "").strip().rstrip("/")
        if not o:
            continue
        if o == "*":
            logger.warning("CORS_ORIGINS contains '*'. Ignoring '*' and using explicit allow-list.")
            continue
        origins.append(o)

    # de-dup
    merged: List[str] = []
    for o in origins:
        if o and o not in merged:
            merged.append(o)
    return merged


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"422 ValidationError on {request.method} {request.url.path} errors={exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": exc.errors(),
            "path": str(request.url.path),
            "method": request.method,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "path": str(request.url.path),
            "method": request.method,
            "error": str(exc) if getattr(request.app.state, "settings", settings).DEBUG else None,
        },
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(cfg: Settings = settings, run_startup: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_startup:
            await startup(app.state, cfg)
        try:
            yield
        finally:
            if run_startup:
                await shutdown(app.state)

    app = FastAPI(
        title="Energy Tracker API",
        version="1.0.0",
        description="Meter readings, contracts and consumption projections",
        docs_url="/docs" if getattr(cfg, "DEBUG", False) else None,
        redoc_url="/redoc" if getattr(cfg, "DEBUG", False) else None,
        lifespan=lifespan,
    )
    app.state.initialized = False
    app.state.settings = cfg

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    cors_origins = _build_cors_origins(cfg)
    logger.info(f"CORS origins configured: {cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,     # Authorization Bearer token, not cookies
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(meters.router, prefix="/api/meters", tags=["meters"])
    app.include_router(readings.router, prefix="/api/readings", tags=["readings"])
    app.include_router(contracts.router, prefix="/api/contracts", tags=["contracts"])
    app.include_router(projections.router, prefix="/api/projections", tags=["projections"])
    app.include_router(aggregates.router, prefix="/api/aggregates", tags=["aggregates"])
    app.include_router(display_data.router, prefix="/api/v2", tags=["display-data"])
    app.include_router(feature_flags.router, prefix="/api/feature-flags", tags=["feature-flags"])

    @app.get("/")
    async def root():
        return {
            "message": "Energy Tracker API is running",
            "version": "1.0.0",
            "environment": getattr(cfg, "ENVIRONMENT", "unknown"),
            "docs": "/docs" if getattr(cfg, "DEBUG", False) else None,
        }

    @app.get("/health")
    async def health_check(request: Request):
        db_status = "unknown"
        db = getattr(request.app.state, "db", None)
        if db is None:
            db_status = "not initialized"
        else:
            try:
                await db.command("ping")
                db_status = "healthy"
            except Exception as e:
                db_status = f"error: {str(e)}"
                logger.error(f"DB health check failed: {e}")

        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": getattr(cfg, "ENVIRONMENT", "unknown"),
            "services": {"database": db_status},
        }

    return app


app = create_app()
