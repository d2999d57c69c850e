"""
Enrichment record produced by the orchestrator and persisted on the report.
"""

from pydantic import BaseModel, Field

from app.models.report import Department, IssueType


FALLBACK_SUMMARY = (
    "Thank you for your report. Our team will review this issue "
    "and route it to the appropriate department."
)
FALLBACK_REASON = "Automatic classification unavailable. Report queued for manual review."


class EnrichmentRecord(BaseModel):
    """
    Authoritative, sanitized enrichment for a single submission.
    Every field is already a closed-set member or within its bounds.
    """
    issue_type: IssueType = IssueType.OTHER
    confidence: float = Field(0.0, ge=0, le=1)
    summary: str = Field(FALLBACK_SUMMARY, max_length=500)
    severity: int = Field(3, ge=1, le=5)
    department: Department = Department.GENERAL
    reason: str = Field("", max_length=200)
    classification_failed: bool = False
    enrichment_failed: bool = False

    @classmethod
    def fallback(cls, classification_failed: bool = False) -> "EnrichmentRecord":
        """Deterministic record used whenever the Enricher cannot answer."""
        return cls(
            issue_type=IssueType.OTHER,
            confidence=0.0,
            summary=FALLBACK_SUMMARY,
            severity=3,
            department=Department.GENERAL,
            reason=FALLBACK_REASON,
            classification_failed=classification_failed,
            enrichment_failed=True,
        )
