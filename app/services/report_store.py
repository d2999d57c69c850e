"""
Report store - persistence for citizen reports plus atomic status transitions.

Two backends share one contract:
- FirestoreReportStore: the production store (firebase-admin)
- InMemoryReportStore: local development and tests (USE_MOCK_DB=true)

DESIGN NOTE:
- zipcode is derived once, at creation, and never re-derived
- status is changed only through set_status(), which reads createdAt /
  resolvedAt and writes the transition in one atomic read-modify-write
  (a Firestore transaction, or a lock for the in-memory store)
- list/aggregate reads use a projection without the image
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import threading
import uuid

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError

from app.core.errors import InternalError, NotFoundError
from app.core.settings import settings
from app.models.enrichment import EnrichmentRecord
from app.models.report import Report, ReportCreate, ReportListItem, ReportStatus
from app.services.status_workflow import StatusWorkflowEngine
from app.utils.firestore_helpers import to_utc_datetime, where_filter
from app.utils.geocoding import extract_zipcode

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Firestore field names (snake_case documents, flat lat/lng like the rest of
# our collections)
LIST_FIELDS = [
    "description", "latitude", "longitude", "address", "zipcode",
    "issue_type", "confidence", "summary", "severity", "department", "reason",
    "status", "classification_failed", "enrichment_failed",
    "created_at", "updated_at", "resolved_at", "resolution_time_hours",
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_report(
    report_id: str,
    submission: ReportCreate,
    enrichment: EnrichmentRecord,
    now: datetime,
) -> Report:
    """Assemble a new pending report from a validated submission and its enrichment."""
    return Report(
        id=report_id,
        image_ref=submission.image_ref,
        description=submission.description or "",
        location={"lat": submission.lat, "lng": submission.lng},
        address=submission.address or "",
        zipcode=extract_zipcode(submission.address),
        issue_type=enrichment.issue_type,
        confidence=enrichment.confidence,
        summary=enrichment.summary,
        severity=enrichment.severity,
        department=enrichment.department,
        reason=enrichment.reason,
        status=ReportStatus.PENDING,
        classification_failed=enrichment.classification_failed,
        enrichment_failed=enrichment.enrichment_failed,
        created_at=now,
        updated_at=now,
        resolved_at=None,
        resolution_time_hours=None,
    )


def report_to_document(report: Report) -> Dict[str, Any]:
    """Firestore document for a report (the id lives in the document key)."""
    return {
        "image_ref": report.image_ref,
        "description": report.description,
        "latitude": report.location.lat,
        "longitude": report.location.lng,
        "address": report.address,
        "zipcode": report.zipcode,
        "issue_type": report.issue_type.value,
        "confidence": report.confidence,
        "summary": report.summary,
        "severity": report.severity,
        "department": report.department.value,
        "reason": report.reason,
        "status": report.status.value,
        "classification_failed": report.classification_failed,
        "enrichment_failed": report.enrichment_failed,
        "created_at": report.created_at,
        "updated_at": report.updated_at,
        "resolved_at": report.resolved_at,
        "resolution_time_hours": report.resolution_time_hours,
    }


def _document_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {
        "description": data.get("description") or "",
        "location": {"lat": data.get("latitude"), "lng": data.get("longitude")},
        "address": data.get("address") or "",
        "zipcode": data.get("zipcode") or "",
        "status": data.get("status") or ReportStatus.PENDING.value,
        "classification_failed": bool(data.get("classification_failed", False)),
        "enrichment_failed": bool(data.get("enrichment_failed", False)),
        "created_at": to_utc_datetime(data.get("created_at")),
        "updated_at": to_utc_datetime(data.get("updated_at") or data.get("created_at")),
        "resolved_at": to_utc_datetime(data.get("resolved_at")),
        "resolution_time_hours": data.get("resolution_time_hours"),
    }
    for key in ("issue_type", "confidence", "summary", "severity", "department", "reason"):
        if data.get(key) is not None:
            fields[key] = data[key]
    return fields


def report_from_document(report_id: str, data: Dict[str, Any]) -> Report:
    return Report(id=report_id, image_ref=data.get("image_ref") or "", **_document_fields(data))


def list_item_from_document(report_id: str, data: Dict[str, Any]) -> ReportListItem:
    return ReportListItem(id=report_id, **_document_fields(data))


class ReportStore(ABC):
    """Persistence contract shared by the Firestore and in-memory stores."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    @abstractmethod
    def create(self, submission: ReportCreate, enrichment: EnrichmentRecord) -> Report:
        """Persist a new report with status=pending."""

    @abstractmethod
    def get(self, report_id: str) -> Optional[Report]:
        """Full report including the image, or None."""

    @abstractmethod
    def set_status(self, report_id: str, new_status: ReportStatus) -> Report:
        """
        Atomically apply a status transition.

        Raises:
            NotFoundError: unknown report id
        """

    @abstractmethod
    def list_reports(self, status: Optional[ReportStatus] = None) -> List[ReportListItem]:
        """All reports (optionally one status), newest first, without images."""

    @abstractmethod
    def iter_reports(self, zipcode: Optional[str] = None) -> Iterable[ReportListItem]:
        """Reports for aggregation, optionally restricted to one zipcode."""

    @abstractmethod
    def ping(self) -> Dict[str, Any]:
        """Cheap connectivity check for /health/db."""


class InMemoryReportStore(ReportStore):
    """
    Process-local store. Records are copied in and out so callers can never
    mutate stored state; a lock makes set_status a single read-modify-write.
    """

    def __init__(self, clock: Clock = utc_now):
        super().__init__(clock)
        self._reports: Dict[str, Report] = {}
        self._lock = threading.Lock()

    def create(self, submission: ReportCreate, enrichment: EnrichmentRecord) -> Report:
        report = build_report(uuid.uuid4().hex, submission, enrichment, self.now())
        with self._lock:
            self._reports[report.id] = report.model_copy(deep=True)
        logger.info(f"Report saved (in-memory): {report.id}")
        return report

    def get(self, report_id: str) -> Optional[Report]:
        with self._lock:
            report = self._reports.get(report_id)
            return report.model_copy(deep=True) if report else None

    def set_status(self, report_id: str, new_status: ReportStatus) -> Report:
        with self._lock:
            current = self._reports.get(report_id)
            if current is None:
                raise NotFoundError(report_id)
            update = StatusWorkflowEngine.build_transition_update(
                created_at=current.created_at,
                resolved_at=current.resolved_at,
                new_status=new_status,
                now=self.now(),
            )
            updated = current.model_copy(update=update)
            self._reports[report_id] = updated
            return updated.model_copy(deep=True)

    def list_reports(self, status: Optional[ReportStatus] = None) -> List[ReportListItem]:
        with self._lock:
            reports = list(self._reports.values())
        items = [r.to_list_item() for r in reports if status is None or r.status == status]
        items.sort(key=lambda r: (-r.created_at.timestamp(), r.id))
        return items

    def iter_reports(self, zipcode: Optional[str] = None) -> Iterable[ReportListItem]:
        with self._lock:
            reports = list(self._reports.values())
        return [r.to_list_item() for r in reports if zipcode is None or r.zipcode == zipcode]

    def ping(self) -> Dict[str, Any]:
        with self._lock:
            count = len(self._reports)
        return {"database": "in-memory", "connected": True, "reports_count": count}

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()


@contextmanager
def _storage_errors(operation: str):
    """Turn Firestore API failures into InternalError, keeping details in the log."""
    try:
        yield
    except GoogleAPIError as e:
        logger.error(f"Firestore {operation} failed: {e}", exc_info=True)
        raise InternalError(f"Storage failure during {operation}")


class FirestoreReportStore(ReportStore):
    """Firestore-backed store (collection configured by REPORTS_COLLECTION)."""

    def __init__(self, db, collection: str = "reports", clock: Clock = utc_now):
        super().__init__(clock)
        self.db = db
        self.collection_name = collection

    @property
    def collection(self):
        return self.db.collection(self.collection_name)

    def create(self, submission: ReportCreate, enrichment: EnrichmentRecord) -> Report:
        doc_ref = self.collection.document()  # Auto-generate unique ID
        report = build_report(doc_ref.id, submission, enrichment, self.now())
        with _storage_errors("create"):
            doc_ref.set(report_to_document(report))
        logger.info(f"Report saved to Firestore: {doc_ref.id}")
        return report

    def get(self, report_id: str) -> Optional[Report]:
        with _storage_errors("get"):
            snapshot = self.collection.document(report_id).get()
        if not snapshot.exists:
            return None
        return report_from_document(snapshot.id, snapshot.to_dict() or {})

    def set_status(self, report_id: str, new_status: ReportStatus) -> Report:
        doc_ref = self.collection.document(report_id)
        store = self

        @firestore.transactional
        def apply_transition(transaction) -> Dict[str, Any]:
            # Firestore re-runs this function on contention, so the
            # resolvedAt check always sees the committed state
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(report_id)
            data = snapshot.to_dict() or {}
            update = StatusWorkflowEngine.build_transition_update(
                created_at=to_utc_datetime(data.get("created_at")),
                resolved_at=to_utc_datetime(data.get("resolved_at")),
                new_status=new_status,
                now=store.now(),
            )
            encoded = {
                key: (value.value if isinstance(value, ReportStatus) else value)
                for key, value in update.items()
            }
            transaction.update(doc_ref, encoded)
            data.update(encoded)
            return data

        with _storage_errors("set_status"):
            data = apply_transition(self.db.transaction())
        return report_from_document(report_id, data)

    def _stream_list_items(self, query) -> List[ReportListItem]:
        with _storage_errors("query"):
            snapshots = list(query.select(LIST_FIELDS).stream())
        return [list_item_from_document(s.id, s.to_dict() or {}) for s in snapshots]

    def list_reports(self, status: Optional[ReportStatus] = None) -> List[ReportListItem]:
        query = self.collection
        if status is not None:
            query = where_filter(query, "status", "==", status.value)
        items = self._stream_list_items(query)
        # Sorted client-side (no composite index needed)
        items.sort(key=lambda r: (-r.created_at.timestamp(), r.id))
        return items

    def iter_reports(self, zipcode: Optional[str] = None) -> Iterable[ReportListItem]:
        query = self.collection
        if zipcode is not None:
            query = where_filter(query, "zipcode", "==", zipcode)
        return self._stream_list_items(query)

    def ping(self) -> Dict[str, Any]:
        with _storage_errors("ping"):
            list(self.collection.limit(1).stream())
        return {"database": "firestore", "connected": True, "collection": self.collection_name}


# Global store instance (singleton)
_store: Optional[ReportStore] = None


def get_report_store() -> ReportStore:
    """
    Get or create the configured report store.

    USE_MOCK_DB=true selects the in-memory store; otherwise Firestore.
    """
    global _store
    if _store is None:
        if settings.USE_MOCK_DB:
            logger.warning("USE_MOCK_DB=true, using in-memory report store (dev only)")
            _store = InMemoryReportStore()
        else:
            from app.config.firebase import get_db
            _store = FirestoreReportStore(get_db(), collection=settings.REPORTS_COLLECTION)
    return _store
