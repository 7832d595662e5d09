"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logging_config import setup_logging
from config import (
    CORS_ALLOWED_ORIGINS,
    API_HOST,
    API_PORT,
)
from api.error_handlers import register_error_handlers
from api.routes import settings, staff
from core.dependencies import get_staff_manager

# Setup logging
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared StaffManager (engine, tables, email provider) once."""
    get_staff_manager()
    logger.info("Looped CMS API started")
    yield
    logger.info("Looped CMS API shutting down")


# Initialize FastAPI application
app = FastAPI(
    title="Looped CMS API",
    description="Staff accounts and site settings for the Looped CMS.",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register route handlers
app.include_router(staff.router)
app.include_router(settings.router)


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
