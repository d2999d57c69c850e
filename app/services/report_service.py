"""
Report service - Business logic for citizen report handling.

Wires the enrichment orchestrator, the report store and the geospatial
engine together for the HTTP layer.

DESIGN NOTE:
- Submission runs enrichment first and always persists, even when every
  AI call failed (the record then carries the fallback fields)
- Status values are validated before the store is touched
- List, bbox and nearby reads never include the image
"""

from typing import List, Optional
import logging

from app.core.errors import NotFoundError, ValidationError
from app.core.settings import settings
from app.models.report import (
    Location,
    NearbyReport,
    Report,
    ReportCreate,
    ReportListItem,
    StatusUpdateResponse,
)
from app.services import geo_service
from app.services.status_workflow import StatusWorkflowEngine

logger = logging.getLogger(__name__)

DISTANCE_DECIMALS = 3


def clamp_limit(limit: Optional[int]) -> int:
    """Apply the configured default and ceiling to a requested page size."""
    if limit is None:
        return settings.DEFAULT_QUERY_LIMIT
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return min(limit, settings.MAX_QUERY_LIMIT)


class ReportService:
    """Submission and read flows for citizen reports."""

    def __init__(self, store=None, orchestrator=None):
        if store is None:
            from app.services.report_store import get_report_store
            store = get_report_store()
        if orchestrator is None:
            from app.services.enrichment_orchestrator import get_enrichment_orchestrator
            orchestrator = get_enrichment_orchestrator()
        self.store = store
        self.orchestrator = orchestrator

    def submit(self, submission: ReportCreate) -> Report:
        """
        Enrich and persist a new report.

        Flow:
        1. Enrichment (never raises; falls back on provider failure)
        2. Store.create (zipcode derived, status=pending)

        Returns:
            Report: the stored record including imageRef
        """
        logger.info(f"📝 Submitting report at ({submission.lat}, {submission.lng})")
        enrichment = self.orchestrator.enrich(submission.image_ref, submission.description)
        report = self.store.create(submission, enrichment)
        logger.info(
            f"✅ Report created: {report.id} "
            f"({report.issue_type.value}, zipcode={report.zipcode or '-'}, "
            f"enrichment_failed={report.enrichment_failed})"
        )
        return report

    def get_report(self, report_id: str) -> Report:
        report = self.store.get(report_id)
        if report is None:
            raise NotFoundError(report_id)
        return report

    def update_status(self, report_id: str, raw_status) -> StatusUpdateResponse:
        """
        Move a report to a new status.

        Raises:
            ValidationError: status not in the closed set (store untouched)
            NotFoundError: unknown report id
        """
        new_status = StatusWorkflowEngine.parse_status(raw_status)
        report = self.store.set_status(report_id, new_status)
        logger.info(f"🔄 Report {report_id} status -> {report.status.value}")
        return StatusUpdateResponse.from_report(report)

    def search(
        self,
        bbox: Optional[str] = None,
        status=None,
        limit: Optional[int] = None,
    ) -> List[ReportListItem]:
        """
        List reports, newest first, optionally inside a bbox
        ("swLng,swLat,neLng,neLat") and/or with one status.
        """
        status_filter = StatusWorkflowEngine.parse_status(status) if status else None
        capped = clamp_limit(limit)
        candidates = self.store.list_reports(status=status_filter)
        if not bbox:
            return candidates[:capped]

        sw_lng, sw_lat, ne_lng, ne_lat = geo_service.parse_bbox(bbox)
        return geo_service.find_in_bbox(
            candidates, sw_lng, sw_lat, ne_lng, ne_lat,
            status=status_filter, limit=capped,
        )

    def nearby(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        status=None,
        limit: Optional[int] = None,
    ) -> List[NearbyReport]:
        """Reports within radius_km of (lat, lng), nearest first."""
        try:
            center = Location(lat=lat, lng=lng)
        except ValueError:
            raise ValidationError("Invalid center. lat must be in [-90, 90] and lng in [-180, 180]")
        if radius_km is None:
            radius_km = settings.DEFAULT_NEARBY_RADIUS_KM

        geo_service.validate_radius(radius_km)
        status_filter = StatusWorkflowEngine.parse_status(status) if status else None
        capped = clamp_limit(limit)

        # Cheap rectangle prefilter, then the exact great-circle test
        box = geo_service.bbox_around(center, radius_km)
        candidates = [
            r for r in self.store.list_reports(status=status_filter)
            if geo_service.in_bbox(r.location, *box)
        ]
        matches = geo_service.find_nearby(center, candidates, radius_km=radius_km)
        return [
            NearbyReport(
                **report.model_dump(),
                distance_km=round(distance, DISTANCE_DECIMALS),
            )
            for report, distance in matches[:capped]
        ]


# Global service instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create ReportService singleton."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
