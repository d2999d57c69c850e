"""
CivicLens API - FastAPI Application Entry Point

Citizens submit photo reports of municipal issues; each report is enriched
with AI classification and routing metadata, stored as a geolocated record,
and exposed through map queries and resolution statistics.

DESIGN PRINCIPLES:
- AI enrichment is best-effort: a provider failure never rejects a report
- Error responses share one envelope: {"success": false, "error": "..."}
- Internal details stay in the logs, never in a 500 body
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import InternalError, NotFoundError, ValidationError
from app.core.settings import settings
from app.routes import health, reports
from app.services.enrichment_orchestrator import (
    get_enrichment_orchestrator,
    shutdown_enrichment_orchestrator,
)
from app.services.report_store import get_report_store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Civic photo reports with AI enrichment, map queries and resolution statistics",
    debug=settings.DEBUG,
)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path"))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"400 {request.method} {request.url.path}: {exc.message}")
    return error_response(status.HTTP_400_BAD_REQUEST, exc.message)


# Pydantic validation error handler (malformed body or query)
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = _describe_validation_errors(exc)
    logger.info(f"400 {request.method} {request.url.path}: {message}")
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(InternalError)
async def internal_error_handler(request: Request, exc: InternalError):
    logger.error(f"🔥 {request.method} {request.url.path}: {exc.message}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# Global exception handler to catch ALL other exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with full traceback; the client sees a generic message."""
    logger.exception(f"🔥 Unhandled exception on {request.method} {request.url.path}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# CORS configuration - origins come from settings, never "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Currently: report store and enrichment orchestrator
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        get_report_store()
    except RuntimeError as e:
        logger.warning(f"Report store initialization failed: {e}")
        logger.warning("The app will start but database operations may fail.")

    get_enrichment_orchestrator()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown: let in-flight background
    classifications finish before the worker pool stops.
    """
    logger.info(f"Shutting down {settings.APP_NAME}")
    shutdown_enrichment_orchestrator(timeout=SHUTDOWN_DRAIN_SECONDS)


# Include routers
app.include_router(health.router)
app.include_router(reports.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "reports": "/reports",
    }
