import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from loyalty.config import settings
from loyalty.api.v1.router import api_router
from loyalty.database import init_db, close_db, async_session_factory
from loyalty.jobs import get_orchestrator, start_jobs, stop_jobs
from loyalty.jobs.registry import load_job_body_modules
from loyalty.jobs.scheduler import start_scheduler, shutdown_scheduler

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables
    - Start the scheduler and background jobs (production, or when
      JOBS_ENABLED is set)

    Shutdown:
    - Stop jobs, then the scheduler, then close the database pool
    """
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} in {settings.ENVIRONMENT} mode")

    await init_db()

    if settings.jobs_enabled:
        load_job_body_modules(settings.JOB_BODY_MODULES)
        start_scheduler()
        try:
            start_jobs()
        except Exception:
            logger.error("Background jobs failed to start, shutting down")
            stop_jobs()
            shutdown_scheduler()
            await close_db()
            raise
    else:
        logger.warning(f"Background jobs disabled in {settings.ENVIRONMENT} mode")

    yield

    stop_jobs()
    shutdown_scheduler()
    await close_db()
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Customer loyalty backend: background jobs and message delivery.",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown",
            "jobs": get_orchestrator().state.value,
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
