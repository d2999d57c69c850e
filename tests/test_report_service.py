"""Tests for the report service flows."""

from unittest.mock import MagicMock

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.core.settings import settings
from app.models.report import ReportStatus
from app.services.report_service import ReportService, clamp_limit

from conftest import make_submission


@pytest.fixture
def service(store, orchestrator):
    return ReportService(store, orchestrator)


class TestClampLimit:
    def test_default(self):
        assert clamp_limit(None) == settings.DEFAULT_QUERY_LIMIT

    def test_capped(self):
        assert clamp_limit(settings.MAX_QUERY_LIMIT + 50) == settings.MAX_QUERY_LIMIT

    def test_non_positive(self):
        with pytest.raises(ValidationError):
            clamp_limit(0)


class TestSubmit:
    def test_submit_enriches_and_stores(self, service, store):
        report = service.submit(make_submission())
        assert store.get(report.id) is not None
        assert report.summary == "Overflowing bin on the corner."
        assert report.enrichment_failed is False

    def test_get_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_report("nope")


class TestUpdateStatus:
    def test_invalid_status_never_touches_store(self, orchestrator):
        store = MagicMock()
        service = ReportService(store, orchestrator)
        with pytest.raises(ValidationError):
            service.update_status("any", "archived")
        store.set_status.assert_not_called()

    def test_returns_status_view(self, service, clock):
        report = service.submit(make_submission())
        clock.advance(hours=6)
        result = service.update_status(report.id, "resolved")
        assert result.id == report.id
        assert result.status == ReportStatus.RESOLVED
        assert result.resolution_time_hours == 6


class TestNearby:
    def test_nearest_first_with_rounded_distance(self, service):
        far = service.submit(make_submission(lat=0.0, lng=0.05))
        near = service.submit(make_submission(lat=0.0, lng=0.01))
        results = service.nearby(0.0, 0.0, radius_km=10)
        assert [r.id for r in results] == [near.id, far.id]
        assert results[0].distance_km == round(results[0].distance_km, 3)
        assert results[0].distance_km == pytest.approx(1.112, abs=1e-3)

    def test_default_radius(self, service):
        service.submit(make_submission(lat=0.0, lng=0.2))  # ~22 km away
        assert service.nearby(0.0, 0.0) == []

    def test_status_filter(self, service):
        report = service.submit(make_submission(lat=0.0, lng=0.0))
        service.submit(make_submission(lat=0.0, lng=0.0))
        service.update_status(report.id, "acknowledged")
        results = service.nearby(0.0, 0.0, status="acknowledged")
        assert [r.id for r in results] == [report.id]

    def test_invalid_center(self, service):
        with pytest.raises(ValidationError):
            service.nearby(95.0, 0.0)

    def test_crosses_antimeridian(self, service):
        east = service.submit(make_submission(lat=0.0, lng=179.99))
        results = service.nearby(0.0, -179.99, radius_km=5)
        assert [r.id for r in results] == [east.id]
