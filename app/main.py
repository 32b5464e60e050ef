"""FastAPI application entry point for Zapdesk."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import router as api_v1_router
from app.config import get_settings
from app.database import engine
from app.logging_config import setup_logging
from app.services.whatsapp import close_zapi_client

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - startup and shutdown events."""
    # Startup
    logger.info("Starting Zapdesk API...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Database: {settings.async_database_url.split('@')[-1]}")  # Hide credentials
    if not settings.zapi_configured:
        logger.warning("Z-API credentials missing - WhatsApp client runs in mock mode")

    # Test database connection
    try:
        async with engine.connect():
            logger.info("✓ Database connection successful")
    except Exception as e:
        logger.error(f"✗ Database connection failed: {e}")

    yield

    # Shutdown
    logger.info("Shutting down Zapdesk API...")
    await close_zapi_client()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title="Zapdesk API",
    description="WhatsApp customer service over Z-API with an AI assistant per account",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
allowed_origins = [
    settings.app_base_url,
    "http://localhost:3000",  # Local development
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if not settings.is_development else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": "Zapdesk API",
        "version": "0.1.0",
        "description": "WhatsApp customer service with AI replies",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Global health check."""
    return {"status": "ok"}
