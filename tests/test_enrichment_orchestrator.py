"""Tests for the enrichment orchestrator (background and sequential modes)."""

import threading
import time

from app.models.enrichment import FALLBACK_REASON, FALLBACK_SUMMARY, EnrichmentRecord
from app.models.report import Department, IssueType
from app.services.enrichment_orchestrator import (
    EnrichmentMode,
    EnrichmentOrchestrator,
    _resolve_mode,
)
from app.services.providers.base import ProviderConfig
from app.services.providers.gemini_provider import GeminiEnricher

from conftest import SAMPLE_IMAGE, FakeClassifier, FakeEnricher, provider_failure


def assert_fallback(record: EnrichmentRecord):
    assert record.issue_type == IssueType.OTHER
    assert record.confidence == 0.0
    assert record.summary == FALLBACK_SUMMARY
    assert record.severity == 3
    assert record.department == Department.GENERAL
    assert record.reason == FALLBACK_REASON
    assert record.enrichment_failed is True


class TestBackgroundMode:
    """Enricher is authoritative; the classifier runs detached."""

    def test_enricher_fields_are_persisted(self):
        orch = EnrichmentOrchestrator(FakeEnricher(), FakeClassifier(issue_type=IssueType.GRAFFITI))
        try:
            record = orch.enrich(SAMPLE_IMAGE, "bin overflowing")
        finally:
            orch.shutdown(timeout=5)

        assert record.issue_type == IssueType.TRASH
        assert record.department == Department.SANITATION
        assert record.severity == 2
        assert record.enrichment_failed is False
        assert record.classification_failed is False

    def test_classifier_is_not_awaited(self):
        gate = threading.Event()
        classifier = FakeClassifier(gate=gate)
        orch = EnrichmentOrchestrator(FakeEnricher(), classifier)
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
            # The classifier is still blocked, yet the record is complete
            assert record.enrichment_failed is False
            assert orch.pending_background_calls() == 1
        finally:
            gate.set()
            orch.shutdown(timeout=5)
        assert orch.pending_background_calls() == 0
        assert classifier.calls == [SAMPLE_IMAGE]

    def test_background_backlog_is_capped(self):
        gate = threading.Event()
        classifier = FakeClassifier(gate=gate)
        orch = EnrichmentOrchestrator(
            FakeEnricher(), classifier, background_workers=1, max_pending=3,
        )
        try:
            records = [orch.enrich(SAMPLE_IMAGE, "") for _ in range(10)]
            assert orch.pending_background_calls() == 3
            assert all(not r.enrichment_failed for r in records)
        finally:
            gate.set()
            orch.drain(timeout=5)
            orch.shutdown(timeout=5)
        assert len(classifier.calls) == 3

    def test_backlog_slots_freed_after_completion(self):
        classifier = FakeClassifier()
        orch = EnrichmentOrchestrator(FakeEnricher(), classifier, max_pending=1)
        try:
            for _ in range(3):
                orch.enrich(SAMPLE_IMAGE, "")
                orch.drain(timeout=5)
        finally:
            orch.shutdown(timeout=5)
        assert len(classifier.calls) == 3

    def test_shutdown_drops_queued_calls(self):
        gate = threading.Event()
        classifier = FakeClassifier(gate=gate)
        orch = EnrichmentOrchestrator(FakeEnricher(), classifier, background_workers=1)
        try:
            for _ in range(4):
                orch.enrich(SAMPLE_IMAGE, "")
            deadline = time.monotonic() + 5
            while not classifier.calls and time.monotonic() < deadline:
                time.sleep(0.01)
            orch.shutdown(timeout=0)
            # Only the call already running survives
            assert orch.pending_background_calls() == 1
        finally:
            gate.set()
            orch.drain(timeout=5)
        assert len(classifier.calls) == 1

    def test_classifier_failure_never_affects_record(self):
        orch = EnrichmentOrchestrator(FakeEnricher(), FakeClassifier(error=provider_failure()))
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
            orch.drain(timeout=5)
        finally:
            orch.shutdown(timeout=5)
        assert record.classification_failed is False
        assert record.enrichment_failed is False

    def test_classifier_unexpected_exception_is_contained(self):
        orch = EnrichmentOrchestrator(FakeEnricher(), FakeClassifier(error=RuntimeError("boom")))
        try:
            orch.enrich(SAMPLE_IMAGE, "")
            orch.drain(timeout=5)
            assert orch.pending_background_calls() == 0
        finally:
            orch.shutdown(timeout=5)

    def test_enricher_failure_gives_fallback(self):
        orch = EnrichmentOrchestrator(FakeEnricher(error=provider_failure()), FakeClassifier())
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
        finally:
            orch.shutdown(timeout=5)
        assert_fallback(record)
        assert record.classification_failed is False

    def test_unconfigured_enricher_gives_fallback(self):
        unconfigured = GeminiEnricher(ProviderConfig(model="gemini-test"))
        orch = EnrichmentOrchestrator(unconfigured, classifier=None)
        try:
            assert_fallback(orch.enrich(SAMPLE_IMAGE, None))
        finally:
            orch.shutdown(timeout=5)

    def test_no_providers_at_all(self):
        orch = EnrichmentOrchestrator(enricher=None, classifier=None)
        try:
            assert_fallback(orch.enrich(SAMPLE_IMAGE, "text"))
        finally:
            orch.shutdown(timeout=5)

    def test_enricher_bug_still_returns_fallback(self):
        orch = EnrichmentOrchestrator(FakeEnricher(error=KeyError("choices")))
        try:
            assert_fallback(orch.enrich(SAMPLE_IMAGE, ""))
        finally:
            orch.shutdown(timeout=5)


class TestSequentialMode:
    """Classifier first, its category is a hint for the enricher."""

    def test_hint_is_passed_to_enricher(self):
        enricher = FakeEnricher()
        orch = EnrichmentOrchestrator(
            enricher, FakeClassifier(issue_type=IssueType.POTHOLE), mode=EnrichmentMode.SEQUENTIAL,
        )
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
        finally:
            orch.shutdown(timeout=5)
        assert enricher.hints == [IssueType.POTHOLE]
        # The enricher may override the hint
        assert record.issue_type == IssueType.TRASH
        assert record.classification_failed is False

    def test_classifier_failure_is_persisted(self):
        enricher = FakeEnricher()
        orch = EnrichmentOrchestrator(
            enricher, FakeClassifier(error=provider_failure()), mode=EnrichmentMode.SEQUENTIAL,
        )
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
        finally:
            orch.shutdown(timeout=5)
        assert enricher.hints == [None]
        assert record.classification_failed is True
        assert record.enrichment_failed is False

    def test_enricher_failure_keeps_classifier_category(self):
        orch = EnrichmentOrchestrator(
            FakeEnricher(error=provider_failure()),
            FakeClassifier(issue_type=IssueType.STREETLIGHT, confidence=0.6),
            mode=EnrichmentMode.SEQUENTIAL,
        )
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
        finally:
            orch.shutdown(timeout=5)
        assert record.issue_type == IssueType.STREETLIGHT
        assert record.confidence == 0.6
        assert record.summary == FALLBACK_SUMMARY
        assert record.enrichment_failed is True
        assert record.classification_failed is False

    def test_both_fail(self):
        orch = EnrichmentOrchestrator(
            FakeEnricher(error=provider_failure()),
            FakeClassifier(error=provider_failure()),
            mode=EnrichmentMode.SEQUENTIAL,
        )
        try:
            record = orch.enrich(SAMPLE_IMAGE, "")
        finally:
            orch.shutdown(timeout=5)
        assert_fallback(record)
        assert record.classification_failed is True


class TestModeResolution:
    def test_known_modes(self):
        assert _resolve_mode("Sequential") == EnrichmentMode.SEQUENTIAL
        assert _resolve_mode("background") == EnrichmentMode.BACKGROUND

    def test_unknown_mode_defaults_to_background(self):
        assert _resolve_mode("parallel") == EnrichmentMode.BACKGROUND
