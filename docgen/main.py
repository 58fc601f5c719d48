"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from docgen.api import router as api_router
from docgen.core.config import get_settings
from docgen.core.logging import get_logger
from docgen.services.agent_service import get_orchestrator, sweep_caches_periodically

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the periodic cache sweep; cancel it on shutdown."""
    settings = get_settings()
    logger.info(f"Starting DocGen Engine in {settings.DOCGEN_ENV} mode")
    sweeper = asyncio.create_task(
        sweep_caches_periodically(get_orchestrator(), settings.CACHE_SWEEP_INTERVAL_SECONDS)
    )

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    logger.info("DocGen Engine stopped")


app = FastAPI(
    title="DocGen Engine",
    description="Agent request orchestration and retrieval cache for document generation",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
