# pyright: reportMissingTypeStubs=false
"""
Booking Engine Backend API

A FastAPI application resolving which providers can be booked under a payer,
serving cached and merged availability, and committing appointments without
double-booking.

Features:
- Bookability resolution (direct, supervised and co-visit)
- Availability cache with nightly population
- Transactional appointment commit
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import admin, appointments, availability, bookability
from core.config import ENABLE_POPULATION_SCHEDULER
from core.constants import CORS_ORIGINS
from core.exceptions import BookingError
from services.availability_population_scheduler import start_population_scheduler, stop_population_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
# Route DataIntegrityWarning and other warnings through logging
logging.captureWarnings(True)

logger = logging.getLogger(__name__)
logger.info("Booking Engine API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Booking Engine Backend API")

    # Note: Database sessions are created fresh for each population unit
    if ENABLE_POPULATION_SCHEDULER:
        try:
            await start_population_scheduler()
            logger.info("✅ Availability population scheduler started")
        except Exception as e:
            logger.exception(f"❌ Failed to start availability population scheduler: {e}")

    yield

    if ENABLE_POPULATION_SCHEDULER:
        try:
            await stop_population_scheduler()
            logger.info("🛑 Availability population scheduler stopped")
        except Exception as e:
            logger.exception(f"❌ Error stopping availability population scheduler: {e}")

    logger.info("🛑 Shutting down Booking Engine Backend API")


# Create FastAPI application
app = FastAPI(
    title="Booking Engine Backend",
    description="Bookability resolution and availability caching for appointment booking",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for the booking widget
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    bookability.router,
    prefix="/api/bookability",
    tags=["bookability"],
    responses={
        404: {"description": "Payer not found"},
        503: {"description": "Booking store unavailable"},
    },
)
app.include_router(
    availability.router,
    prefix="/api/availability",
    tags=["availability"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        503: {"description": "Booking store unavailable"},
    },
)
app.include_router(
    appointments.router,
    prefix="/api/appointments",
    tags=["appointments"],
    responses={
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        503: {"description": "Booking store unavailable"},
    },
)
app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["admin"],
    responses={
        503: {"description": "Booking store unavailable"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Booking Engine Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.info(f"{exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": exc.code},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def http_status_error_handler(request: Request, exc: httpx.HTTPStatusError):
    """Handle HTTP status errors from external services."""
    logger.exception(f"External service error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "External service error", "type": "external_service_error"},
    )
