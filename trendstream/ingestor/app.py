"""Ingestor service FastAPI application."""

import asyncio
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from trendstream import __version__
from trendstream.core.errors import ConfigurationError
from trendstream.core.logging import get_logger, setup_logging
from trendstream.core.settings import get_settings
from trendstream.core.store import SqlStore
from trendstream.ingestor.controller import IngestionController
from trendstream.ingestor.pipeline import build_controller
from trendstream.ranker.pipeline import run_ranking

settings = get_settings()

setup_logging("ingestor", settings)
logger = get_logger(__name__)

app = FastAPI(title="TrendStream Ingestor", version=__version__)

# Controller running in this process, if any
state: Dict[str, Any] = {"controller": None, "task": None}


class RunRankingResponse(BaseModel):
    """Response model for a ranking run."""
    status: str
    message: str
    stats: Dict[str, Any]


def check_manual_run_enabled():
    """Check if manual runs are enabled via settings."""
    if not get_settings().allow_manual_run:
        raise HTTPException(
            status_code=403,
            detail="Manual runs are disabled. Set ALLOW_MANUAL_RUN=true to enable."
        )
    return True


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"ok": True, "service": "ingestor"}


@app.get("/")
async def root():
    """Root endpoint with service information."""
    current = get_settings()
    return {
        "service": "ingestor",
        "version": __version__,
        "mode": current.tracking_mode,
        "manual_run_enabled": current.allow_manual_run,
        "endpoints": {
            "health": "/healthz",
            "status": "/status",
            "rank": "/rank (POST)" if current.allow_manual_run else "/rank (disabled)"
        }
    }


@app.get("/status")
async def status():
    """Counters of the ingestion session running in this process."""
    controller: Optional[IngestionController] = state["controller"]
    if controller is None:
        return {"running": False}
    return {"running": controller.running, **controller.session.snapshot()}


@app.post("/rank", response_model=RunRankingResponse)
async def rank(_: bool = Depends(check_manual_run_enabled)):
    """Run the ranking pass over stored messages."""
    try:
        stats = await run_ranking(SqlStore(), get_settings())
    except ConfigurationError as e:
        logger.error(f"Ranking run rejected: {e}", extra={"endpoint": "/rank"})
        raise HTTPException(status_code=500, detail=f"Ranking failed: {e}")

    status_value = "success" if not stats["errors"] else "partial_success"
    message = (
        f"Ranking completed in {stats['runtime_seconds']}s: "
        f"{stats['trends_ranked']}/{stats['trends_total']} trends, "
        f"{stats['messages_ranked']} messages"
    )
    # Keys must be strings in the response body
    stats["quality"] = {str(k): v for k, v in stats["quality"].items()}
    return RunRankingResponse(status=status_value, message=message, stats=stats)


@app.on_event("startup")
async def startup_event():
    """Startup event handler."""
    current = get_settings()
    logger.info(
        "Starting ingestor service",
        extra={
            "service": "ingestor",
            "version": __version__,
            "ingest_on_startup": current.ingest_on_startup,
        }
    )
    if current.ingest_on_startup:
        controller = build_controller(current)
        state["controller"] = controller
        state["task"] = asyncio.create_task(controller.run())


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the ingestion controller and wait for its final flush."""
    controller: Optional[IngestionController] = state["controller"]
    task = state["task"]
    if controller is not None and task is not None:
        controller.stop()
        await asyncio.gather(task, return_exceptions=True)
        await controller.feed.aclose()
        await controller.catalog.source.aclose()
    state["controller"] = None
    state["task"] = None


if __name__ == "__main__":
    logger.info("Starting ingestor service via uvicorn")
    uvicorn.run(
        "trendstream.ingestor.app:app",
        host=settings.service_host,
        port=settings.service_port or 8001,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
