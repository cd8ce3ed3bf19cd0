"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from progression.api.routes import router
from progression.api.middleware import setup_cors, setup_rate_limiting
from progression.config import LOG_LEVEL, validate_config
from progression.exceptions import ProgressionError
from progression.observability.metrics_middleware import setup_metrics_middleware
from progression.observability.sentry_config import init_sentry
from progression.scheduler.jobs import create_scheduler, rebuild_leaderboard
from progression.services.container import build_container, reset_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting progression API server...")
    validate_config()
    container = await build_container()

    count = await rebuild_leaderboard(container)
    if count is not None:
        logger.info(f"Leaderboard warmed from {count} avatars")

    scheduler = create_scheduler(container)
    scheduler.start()
    logger.info("Background scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down progression API server...")
    scheduler.shutdown(wait=False)
    await container.close()
    reset_container()
    logger.info("Progression services closed")


def create_api_application(use_lifespan: bool = True) -> FastAPI:
    """Create and configure FastAPI application"""
    init_sentry()

    app = FastAPI(
        title="Progression Engine API",
        description="XP, levels, streaks, achievements, leaderboards and campus presence",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_metrics_middleware(app)

    # Include routes
    app.include_router(router)

    @app.exception_handler(ProgressionError)
    async def progression_exception_handler(request: Request, exc: ProgressionError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
