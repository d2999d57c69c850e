"""
Report endpoints - API routes for citizen report submission, queries,
status updates and resolution statistics.

Responses use the envelope {"success": true, "data": ...}; list responses
add "count". Errors are rendered by the handlers in app.main.
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from app.models.report import ReportCreate, StatusUpdateRequest
from app.services.analytics_service import AnalyticsService, get_analytics_service
from app.services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def envelope(data: BaseModel) -> Dict[str, Any]:
    return {"success": True, "data": _dump(data)}


def list_envelope(items: List[BaseModel]) -> Dict[str, Any]:
    return {"success": True, "count": len(items), "data": [_dump(item) for item in items]}


async def _run(func, *args):
    # Store and provider calls are blocking; keep them off the event loop
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_report(
    report: ReportCreate,
    service: ReportService = Depends(get_report_service),
):
    """
    Submit a new citizen report.

    This endpoint:
    1. Validates imageRef, lat and lng (400 on failure, nothing stored)
    2. Runs AI enrichment (falls back silently if providers fail)
    3. Stores the report with status=pending

    Returns the created report including imageRef.
    """
    logger.info(f"📝 POST /reports - lat={report.lat}, lng={report.lng}")
    created = await _run(service.submit, report)
    return envelope(created)


@router.get("")
async def list_reports(
    bbox: Optional[str] = Query(None, description="swLng,swLat,neLng,neLat"),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, description="Maximum number of reports"),
    service: ReportService = Depends(get_report_service),
):
    """List reports newest first, optionally inside a bounding box. No images."""
    reports = await _run(service.search, bbox, status_filter, limit)
    return list_envelope(reports)


@router.get("/nearby")
async def nearby_reports(
    lat: float = Query(...),
    lng: float = Query(...),
    radius_km: Optional[float] = Query(None, alias="radiusKm"),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None),
    service: ReportService = Depends(get_report_service),
):
    """Reports within radiusKm (default 10) of a point, nearest first."""
    reports = await _run(service.nearby, lat, lng, radius_km, status_filter, limit)
    return list_envelope(reports)


@router.get("/stats/summary")
async def citywide_stats(service: AnalyticsService = Depends(get_analytics_service)):
    """Citywide resolution statistics with a per-zipcode breakdown."""
    summary = await _run(service.citywide_summary)
    return envelope(summary)


@router.get("/stats/zipcode/{zipcode}")
async def zipcode_stats(
    zipcode: str,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Resolution statistics for one zipcode, broken down by department."""
    detail = await _run(service.zipcode_detail, zipcode)
    return envelope(detail)


@router.get("/{report_id}")
async def get_report(
    report_id: str,
    service: ReportService = Depends(get_report_service),
):
    """Fetch a single report including its image."""
    report = await _run(service.get_report, report_id)
    return envelope(report)


@router.patch("/{report_id}/status")
async def update_report_status(
    report_id: str,
    body: StatusUpdateRequest,
    service: ReportService = Depends(get_report_service),
):
    """
    Change a report's status.

    The first transition to resolved stamps resolvedAt and
    resolutionTimeHours; later transitions never recompute them.
    """
    logger.info(f"🔄 PATCH /reports/{report_id}/status -> {body.status}")
    result = await _run(service.update_status, report_id, body.status)
    return envelope(result)
