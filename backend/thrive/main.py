# backend/thrive/main.py
"""
Application entry point for the Thrive scheduling API.

Mounts the versioned routers under /api/v1 and the Prometheus scrape
endpoint, and installs the shared error envelope and HTTP metrics.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import prometheus as prometheus_routes
from .routes.v1 import packages as packages_v1, payments as payments_v1, teachers as teachers_v1

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_TITLE = "Thrive Scheduling API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{API_TITLE} starting up ({settings.environment})")
    if not settings.webhook_secrets:
        logger.warning("No Stripe webhook secrets configured; webhooks will be rejected")
    yield
    logger.info(f"{API_TITLE} shutting down")


app = FastAPI(
    title=API_TITLE,
    description="Teacher availability, class booking and package credits",
    version=API_VERSION,
    lifespan=app_lifespan,
)
# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(PrometheusMiddleware)

# V1 API router - all versioned endpoints live here
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(teachers_v1.router, prefix="/teachers")
api_v1.include_router(packages_v1.router, prefix="/packages")
app.include_router(api_v1)

# Infrastructure routes stay unversioned
app.include_router(prometheus_routes.router)


@app.get("/health", include_in_schema=False)
def health_check() -> dict:
    return {"status": "healthy", "version": API_VERSION, "environment": settings.environment}
