"""
TeamPlan API Main Application

Entry point for the FastAPI application.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from teamplan.platform.config import settings
from teamplan.platform.logging import configure_logging, get_logger
from teamplan.api.routers import analysis
from teamplan.api.dependencies import get_policy

# Configure logging on import
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting TeamPlan API...")
    # Fail fast on an inconsistent allocation policy
    policy = get_policy()
    logger.info(
        f"Allocation policy loaded: floor {policy.under_allocation_floor:g}%, "
        f"limit {policy.over_allocation_limit:g}%"
    )

    yield

    logger.info("Shutting down TeamPlan API...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Capacity and conflict analysis for team allocation plans",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(",") if settings.CORS_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# OBSERVABILITY
# =============================================================================

# Add Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================


@app.get("/health/live", tags=["Health"])
async def liveness() -> dict:
    """Liveness probe - is the service running?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
async def readiness() -> dict:
    """Readiness probe - the analyzers need nothing but a valid policy."""
    return {
        "status": "ready",
        "version": settings.VERSION,
        "checks": {"policy": "healthy"},
    }


# =============================================================================
# API ROUTERS
# =============================================================================

app.include_router(analysis.router, prefix="/api/v1/analysis", tags=["Analysis"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "teamplan.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
