"""FastAPI application for the Clinical Coding Rules Engine."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coding_engine import __version__
from coding_engine.api import coding_router
from coding_engine.core.config import settings
from coding_engine.core.exceptions import CodeMetadataUnavailableError
from coding_engine.services.rules_engine import get_coding_engine

logging.basicConfig(
    level=settings.logging_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def prewarm_services() -> dict[str, Any]:
    """Load the metadata dictionary and create the engine before serving.

    A missing dictionary is logged, not fatal: the API then answers encode
    requests with 503 until the dictionary becomes loadable.
    """
    start_time = time.perf_counter()
    engine = get_coding_engine()
    try:
        await engine.ensure_ready()
    except CodeMetadataUnavailableError as e:
        logger.warning(f"Failed to prewarm code metadata: {e}")
    total_time_ms = (time.perf_counter() - start_time) * 1000

    return {
        "total_prewarm_time_ms": round(total_time_ms, 2),
        "engine": engine.get_stats(),
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup pre-warms the metadata dictionary and the engine singleton so
    the first encode request does not pay the load.
    """
    startup_start = time.perf_counter()

    prewarm_stats: dict[str, Any] = {}
    if settings.prewarm_metadata:
        prewarm_stats = await prewarm_services()
        logger.info(f"Services pre-warmed in {prewarm_stats['total_prewarm_time_ms']}ms")

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {total_startup_ms:.0f}ms")

    app.state.prewarm_stats = prewarm_stats
    app.state.startup_time_ms = total_startup_ms

    yield


app = FastAPI(
    title=settings.app_name,
    description="Resolves extracted clinical findings into validated, sequenced ICD-10-CM codes.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(coding_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Reports the metadata dictionary state alongside the usual liveness info.
    """
    engine = get_coding_engine()
    return {
        "status": "healthy",
        "service": "clinical-coding-engine",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "engine": engine.get_stats(),
        "startup_time_ms": getattr(app.state, "startup_time_ms", 0),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": f"{settings.app_name} API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
