"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.settings import settings
from app.services.report_store import ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
async def database_health(store: ReportStore = Depends(get_report_store)):
    """
    Database connectivity check.
    Performs a lightweight read against the configured report store.
    """
    try:
        loop = asyncio.get_running_loop()
        details = await loop.run_in_executor(None, store.ping)
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail="Database connection failed")

    return {
        "status": "healthy",
        **details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
