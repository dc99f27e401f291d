"""FastAPI application for the citizen reports dashboard backend."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from reportdash.config import get_settings
from reportdash.rate_limit import limiter
from reportdash.routers import health_router, map_router, reports_router
from reportdash.services.filter_engine import ReportFilterEngine
from reportdash.services.geocoding import GeocodeCache, GeocodeDefaults
from reportdash.services.geocoding_clients import build_geocode_provider
from reportdash.services.report_feed import ReportFeed
from reportdash.services.report_store import build_report_store
from reportdash.websocket import websocket_router
from reportdash.websocket.manager import manager as ws_manager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting report dashboard backend...")

    engine = ReportFilterEngine(settings.tz)
    geocoder = GeocodeCache(
        build_geocode_provider(settings),
        GeocodeDefaults.from_settings(settings),
        precision=settings.geocode_precision,
        timeout=settings.geocoder_timeout_seconds + 2,
        max_concurrency=settings.geocoder_max_concurrency,
    )

    try:
        store = build_report_store(settings)
    except Exception as e:
        logger.error(f"Report store not available: {e}")
        raise

    async with ReportFeed(store) as feed:
        async def push_to_websockets(snapshot, changes) -> None:
            await ws_manager.broadcast(snapshot, changes, feed.version)

        feed.add_listener(push_to_websockets)

        app.state.engine = engine
        app.state.geocoder = geocoder
        app.state.feed = feed
        logger.info("Report feed subscribed")

        yield

    logger.info("Report dashboard backend shut down")


# Create FastAPI app
app = FastAPI(
    title="ReportDash API",
    description="Live municipal incident reports: filtered lists, statistics and map overlays",
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Include routers
app.include_router(health_router)
app.include_router(reports_router, prefix=settings.api_v1_prefix)
app.include_router(map_router, prefix=settings.api_v1_prefix)
app.include_router(websocket_router)  # WebSocket at /ws/reports


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "ReportDash API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reportdash.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
