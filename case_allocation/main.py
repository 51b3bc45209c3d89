"""Case allocation service — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from case_allocation.adapters.persistence.database import engine
from case_allocation.config import settings
from case_allocation.infrastructure.api.errors import register_error_handlers
from case_allocation.infrastructure.api.routes_allocations import router as allocations_router
from case_allocation.infrastructure.api.routes_health import router as health_router
from case_allocation.infrastructure.api.routes_reallocation import router as reallocation_router
from case_allocation.infrastructure.api.routes_rules import router as rules_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Case Allocation Service",
        description="Rule-based allocation and reallocation of collection cases to agents",
        version="0.1.0",
        lifespan=lifespan,
    )
    register_error_handlers(app)

    app.include_router(health_router, prefix="/api")
    app.include_router(rules_router, prefix="/api")
    app.include_router(allocations_router, prefix="/api")
    app.include_router(reallocation_router, prefix="/api")

    return app


app = create_app()
