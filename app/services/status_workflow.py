"""
Status Workflow Engine - report lifecycle and resolution metrics.

DESIGN PRINCIPLES:
- Any member of the closed status set is an accepted target
  (pending → acknowledged → in_progress → resolved is the usual path,
  but skipping straight to resolved is allowed)
- resolved is the only state with a side effect: the first transition into
  it stamps resolvedAt and resolutionTimeHours, exactly once
- Leaving resolved keeps the first resolution fields
- The transition is computed as a pure update, and the stores apply it in a
  single atomic read-modify-write
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
import logging

from app.core.errors import ValidationError
from app.models.report import ReportStatus

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class StatusWorkflowEngine:
    """
    Lifecycle rules for report status transitions.
    """

    @classmethod
    def valid_statuses(cls) -> List[str]:
        return [status.value for status in ReportStatus]

    @classmethod
    def parse_status(cls, raw: Any) -> ReportStatus:
        """
        Validate a requested status.

        Raises:
            ValidationError: if the value is not a member of the closed set
        """
        if isinstance(raw, ReportStatus):
            return raw
        try:
            return ReportStatus(raw)
        except ValueError:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(cls.valid_statuses())}"
            )

    @staticmethod
    def resolution_hours(created_at: datetime, resolved_at: datetime) -> int:
        """Elapsed whole hours, rounded half-up. Clock skew never goes negative."""
        elapsed = max(0.0, (resolved_at - created_at).total_seconds() / SECONDS_PER_HOUR)
        return int(Decimal(str(elapsed)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @classmethod
    def build_transition_update(
        cls,
        created_at: datetime,
        resolved_at: Optional[datetime],
        new_status: ReportStatus,
        now: datetime,
    ) -> Dict[str, Any]:
        """
        Compute the field updates for a status change.

        Args:
            created_at: the report's creation time, read inside the same
                atomic operation that will apply the update
            resolved_at: the report's current resolvedAt (None if never resolved)
            new_status: validated target status
            now: transition time

        Returns:
            Dict of attribute updates (snake_case) to apply atomically
        """
        update: Dict[str, Any] = {
            "status": new_status,
            "updated_at": now,
        }
        if new_status == ReportStatus.RESOLVED and resolved_at is None:
            update["resolved_at"] = now
            update["resolution_time_hours"] = cls.resolution_hours(created_at, now)
            logger.info(f"Report resolved after {update['resolution_time_hours']}h")
        return update
