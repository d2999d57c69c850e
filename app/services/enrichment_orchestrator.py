"""
Enrichment Orchestrator - turns (imageRef, description) into a complete,
safe-to-persist EnrichmentRecord.

DESIGN PRINCIPLES (CRITICAL):
- The Enricher is authoritative for every persisted AI field
- enrich() never raises; every failure yields the fallback record
- No retries here; each provider gets a single, timeout-bounded attempt
- The background Classifier call is fire-and-forget: it is never awaited,
  its outcome only reaches the log, and it cannot fail the submission

Two supported modes:
- background: Enricher only for the record, Classifier runs detached
- sequential: Classifier first, its category is passed to the Enricher as a
  hint, classificationFailed is persisted
"""

from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Optional, Set
import logging
import threading

from app.core.errors import ProviderError
from app.core.settings import settings
from app.models.enrichment import EnrichmentRecord
from app.models.report import IssueType
from app.services.providers.base import (
    ClassificationResult,
    ClassifierProvider,
    EnricherProvider,
    EnrichmentResult,
)
from app.services.providers.registry import get_classifier, get_enricher

logger = logging.getLogger(__name__)


class EnrichmentMode(str, Enum):
    BACKGROUND = "background"
    SEQUENTIAL = "sequential"


class EnrichmentOrchestrator:
    """
    Sequences the Classifier and Enricher adapters and merges their output.

    Usage::

        orchestrator = EnrichmentOrchestrator(enricher, classifier)
        record = orchestrator.enrich(image_ref, description)
    """

    def __init__(
        self,
        enricher: Optional[EnricherProvider],
        classifier: Optional[ClassifierProvider] = None,
        mode: EnrichmentMode = EnrichmentMode.BACKGROUND,
        background_workers: int = 2,
        max_pending: int = 50,
    ):
        self.enricher = enricher
        self.classifier = classifier
        self.mode = mode
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, background_workers),
            thread_name_prefix="classifier-telemetry",
        )
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        # Caps queued and running classifier calls (each holds its image)
        self._slots = threading.BoundedSemaphore(max(1, max_pending))

    def enrich(self, image_ref: str, description: Optional[str]) -> EnrichmentRecord:
        """
        Produce the enrichment record for a submission.

        Always returns a valid record; failure is expressed through the
        enrichmentFailed / classificationFailed flags.
        """
        description = description or ""
        try:
            if self.mode == EnrichmentMode.SEQUENTIAL:
                return self._enrich_sequential(image_ref, description)

            self._launch_background_classification(image_ref)
            enrichment = self._call_enricher(image_ref, description)
            if enrichment is None:
                return EnrichmentRecord.fallback()
            return self._record_from(enrichment)

        except Exception as e:
            # enrich() never raises
            logger.error(f"⚠️ Enrichment orchestration failed unexpectedly: {e}", exc_info=True)
            return EnrichmentRecord.fallback(
                classification_failed=self.mode == EnrichmentMode.SEQUENTIAL
            )

    def _enrich_sequential(self, image_ref: str, description: str) -> EnrichmentRecord:
        classification = self._call_classifier(image_ref)
        classification_failed = classification is None
        hint = classification.issue_type if classification else None

        enrichment = self._call_enricher(image_ref, description, hint=hint)
        if enrichment is not None:
            return self._record_from(enrichment, classification_failed=classification_failed)

        record = EnrichmentRecord.fallback(classification_failed=classification_failed)
        if classification is not None:
            # Enricher unavailable: keep the classifier's category
            record.issue_type = classification.issue_type
            record.confidence = classification.confidence
        return record

    @staticmethod
    def _record_from(
        enrichment: EnrichmentResult,
        classification_failed: bool = False,
    ) -> EnrichmentRecord:
        return EnrichmentRecord(
            issue_type=enrichment.issue_type,
            confidence=enrichment.confidence,
            summary=enrichment.summary,
            severity=enrichment.severity,
            department=enrichment.department,
            reason=enrichment.reason,
            classification_failed=classification_failed,
            enrichment_failed=False,
        )

    def _call_enricher(
        self,
        image_ref: str,
        description: str,
        hint: Optional[IssueType] = None,
    ) -> Optional[EnrichmentResult]:
        if self.enricher is None or not self.enricher.is_enabled():
            logger.warning("⚠️ Enricher not configured, using fallback enrichment")
            return None
        try:
            logger.info(f"✨ Requesting enrichment from {self.enricher.get_model_info()['name']}")
            result = self.enricher.enrich(image_ref, description, hint=hint)
            logger.info(
                f"✅ Enrichment completed: {result.issue_type.value} "
                f"(severity {result.severity}, {result.department.value})"
            )
            return result
        except ProviderError as e:
            logger.warning(f"⚠️ Enrichment failed, using fallback: {e}")
        except Exception as e:
            logger.error(f"⚠️ Enricher raised unexpectedly, using fallback: {e}", exc_info=True)
        return None

    def _call_classifier(self, image_ref: str) -> Optional[ClassificationResult]:
        if self.classifier is None or not self.classifier.is_enabled():
            logger.warning("⚠️ Classifier not configured, classification marked as failed")
            return None
        try:
            result = self.classifier.classify(image_ref)
            logger.info(
                f"🔍 Classification: {result.issue_type.value} ({result.confidence:.2f})"
            )
            return result
        except ProviderError as e:
            logger.warning(f"⚠️ Classification failed: {e}")
        except Exception as e:
            logger.error(f"⚠️ Classifier raised unexpectedly: {e}", exc_info=True)
        return None

    # Fire-and-forget telemetry call

    def _launch_background_classification(self, image_ref: str) -> None:
        if self.classifier is None or not self.classifier.is_enabled():
            logger.debug("Classifier not configured, skipping background classification")
            return
        if not self._slots.acquire(blocking=False):
            logger.warning("Background classification backlog full, skipping classifier call")
            return
        try:
            future = self._executor.submit(self._run_background_classification, image_ref)
        except RuntimeError as e:
            # Executor already shut down (application stopping)
            self._slots.release()
            logger.warning(f"Background classification not scheduled: {e}")
            return

        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _run_background_classification(self, image_ref: str) -> None:
        """Runs on the worker thread. Contains every outcome; never raises."""
        try:
            result = self.classifier.classify(image_ref)
            logger.info(f"📋 Background classification (not persisted): {result.to_dict()}")
        except ProviderError as e:
            logger.info(f"📋 Background classification failed (ignored): {e}")
        except Exception as e:
            logger.warning(f"📋 Background classification raised (ignored): {e}", exc_info=True)
        finally:
            self._slots.release()

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        if future.cancelled():
            # Never ran, so its slot was never released
            self._slots.release()

    def pending_background_calls(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight background calls (shutdown and tests)."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)
        # Done-callbacks run after waiters wake, so prune finished futures here too
        with self._pending_lock:
            self._pending.difference_update([f for f in pending if f.done()])

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.drain(timeout)
        # Queued calls are dropped; only running ones finish
        self._executor.shutdown(wait=False, cancel_futures=True)


def _resolve_mode(raw: str) -> EnrichmentMode:
    try:
        return EnrichmentMode((raw or "").strip().lower())
    except ValueError:
        logger.warning(f"Unknown ENRICHMENT_MODE={raw!r}, using 'background'")
        return EnrichmentMode.BACKGROUND


# Global orchestrator instance (singleton pattern)
_orchestrator: Optional[EnrichmentOrchestrator] = None


def get_enrichment_orchestrator() -> EnrichmentOrchestrator:
    """
    Get or create the orchestrator singleton, wired to the registry adapters.
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = EnrichmentOrchestrator(
            enricher=get_enricher(),
            classifier=get_classifier(),
            mode=_resolve_mode(settings.ENRICHMENT_MODE),
            background_workers=settings.BACKGROUND_WORKERS,
            max_pending=settings.BACKGROUND_MAX_PENDING,
        )
        logger.info(f"✅ Enrichment orchestrator initialized (mode: {_orchestrator.mode.value})")
    return _orchestrator


def shutdown_enrichment_orchestrator(timeout: Optional[float] = None) -> None:
    global _orchestrator
    if _orchestrator is not None:
        _orchestrator.shutdown(timeout)
        _orchestrator = None
