"""
Main FastAPI application.

Serves Form D ingestion and read endpoints.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from formd_scout.api.v1 import form_d
from formd_scout.core.config import get_settings
from formd_scout.core.database import create_tables, get_engine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting FormD Scout ingestion service")
    logger.info(f"Log level: {settings.log_level}")
    if not settings.sec_user_agent:
        logger.warning("SEC_USER_AGENT is not set; ingestion requests will be rejected")

    try:
        create_tables()
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="FormD Scout",
    description="SEC Form D private placement ingestion service",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(form_d.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "FormD Scout",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Returns status of the service and database connectivity.
    """
    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown"
    }

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
