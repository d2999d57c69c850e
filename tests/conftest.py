"""Shared pytest fixtures."""

import os

# Settings are read at import time: force the in-memory store and keep the
# real AI providers out of every test run.
os.environ["USE_MOCK_DB"] = "true"
os.environ["AI_ENABLED"] = "false"

import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.errors import ProviderError
from app.models.enrichment import EnrichmentRecord
from app.models.report import Department, IssueType, ReportCreate, ReportStatus
from app.services.enrichment_orchestrator import EnrichmentOrchestrator
from app.services.providers.base import (
    ClassificationResult,
    ClassifierProvider,
    EnricherProvider,
    EnrichmentResult,
    ProviderConfig,
)
from app.services.report_store import InMemoryReportStore

SAMPLE_IMAGE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, hours: float = 0, minutes: float = 0, seconds: float = 0) -> None:
        self.current += timedelta(hours=hours, minutes=minutes, seconds=seconds)


def fake_config(name: str) -> ProviderConfig:
    return ProviderConfig(api_key="test-key", base_url=f"http://{name}.test", model=name)


class FakeClassifier(ClassifierProvider):
    """Classifier returning a fixed category, or raising when `error` is set."""

    PROVIDER_NAME = "fake-classifier"

    def __init__(
        self,
        issue_type: IssueType = IssueType.POTHOLE,
        confidence: float = 0.9,
        error: Optional[Exception] = None,
        gate: Optional[threading.Event] = None,
    ):
        super().__init__(fake_config("fake-classifier"))
        self.issue_type = issue_type
        self.confidence = confidence
        self.error = error
        self.gate = gate
        self.calls: List[str] = []

    def classify(self, image_ref: str) -> ClassificationResult:
        self.calls.append(image_ref)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return ClassificationResult(self.issue_type, self.confidence, self.config.model)


class FakeEnricher(EnricherProvider):
    """Enricher returning a fixed enrichment, or raising when `error` is set."""

    PROVIDER_NAME = "fake-enricher"

    def __init__(
        self,
        issue_type: IssueType = IssueType.TRASH,
        department: Department = Department.SANITATION,
        error: Optional[Exception] = None,
    ):
        super().__init__(fake_config("fake-enricher"))
        self.issue_type = issue_type
        self.department = department
        self.error = error
        self.hints: List[Optional[IssueType]] = []

    def enrich(self, image_ref, description, hint=None) -> EnrichmentResult:
        self.hints.append(hint)
        if self.error is not None:
            raise self.error
        return EnrichmentResult(
            issue_type=self.issue_type,
            confidence=0.85,
            summary="Overflowing bin on the corner.",
            severity=2,
            department=self.department,
            reason="Trash collection is handled by sanitation.",
            model_name=self.config.model,
        )


def provider_failure(name: str = "fake") -> ProviderError:
    return ProviderError(name, "timed out after 30.0s")


def make_submission(
    lat: float = 29.7604,
    lng: float = -95.3698,
    address: Optional[str] = "500 Main St, Houston, TX 77002",
    description: Optional[str] = "Overflowing trash can",
) -> ReportCreate:
    return ReportCreate(
        image_ref=SAMPLE_IMAGE, lat=lat, lng=lng, description=description, address=address,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryReportStore(clock=clock)


@pytest.fixture
def enrichment():
    return EnrichmentRecord(
        issue_type=IssueType.POTHOLE,
        confidence=0.9,
        summary="Deep pothole in the right lane.",
        severity=4,
        department=Department.PUBLIC_WORKS,
        reason="Road surface repairs belong to public works.",
    )


@pytest.fixture
def add_report(store, clock, enrichment):
    """Create a report, optionally resolving it after `resolve_after_hours`."""

    def _add(address=None, department=None, resolve_after_hours=None, lat=29.7604, lng=-95.3698):
        record = enrichment.model_copy(update={"department": department}) if department else enrichment
        start = clock.current
        report = store.create(make_submission(lat=lat, lng=lng, address=address), record)
        if resolve_after_hours is not None:
            clock.advance(hours=resolve_after_hours)
            report = store.set_status(report.id, ReportStatus.RESOLVED)
            clock.current = start
        return report

    return _add


@pytest.fixture
def orchestrator():
    orch = EnrichmentOrchestrator(enricher=FakeEnricher(), classifier=FakeClassifier())
    yield orch
    orch.shutdown(timeout=5)


@pytest.fixture
def client(store, orchestrator):
    """TestClient wired to the in-memory store and fake providers."""
    from app.main import app
    from app.services.analytics_service import AnalyticsService, get_analytics_service
    from app.services.report_service import ReportService, get_report_service
    from app.services.report_store import get_report_store

    app.dependency_overrides[get_report_service] = lambda: ReportService(store, orchestrator)
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(store)
    app.dependency_overrides[get_report_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
