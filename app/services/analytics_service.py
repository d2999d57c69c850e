"""
Analytics Service - resolution-performance statistics by city, zipcode and department.

All figures are computed in Python over the store's list projection:
- averages use only reports that carry resolution_time_hours
- an empty average is None, and None propagates to days and rating
- hours, days and rates are rounded half-up to one decimal
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional
import logging

from app.core.errors import ValidationError
from app.models.report import Department, ReportListItem, ReportStatus
from app.models.stats import (
    CitywideSummary,
    DepartmentStats,
    ResolutionStats,
    ResponsivenessRating,
    ZipcodeDetail,
    ZipcodeStats,
)
from app.utils.geocoding import is_valid_zipcode

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24

# (upper bound in hours, rating), checked in order
RATING_THRESHOLDS = [
    (24, ResponsivenessRating.EXCELLENT),
    (48, ResponsivenessRating.GOOD),
    (72, ResponsivenessRating.AVERAGE),
    (168, ResponsivenessRating.SLOW),
]


def round1(value: Optional[float]) -> Optional[float]:
    """Round half-up to one decimal (36.05 -> 36.1, unlike built-in round)."""
    if value is None:
        return None
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def rate_responsiveness(avg_hours: Optional[float]) -> Optional[ResponsivenessRating]:
    if avg_hours is None:
        return None
    for upper, rating in RATING_THRESHOLDS:
        if avg_hours <= upper:
            return rating
    return ResponsivenessRating.VERY_SLOW


class _Tally:
    """Running counts for one group of reports."""

    def __init__(self):
        self.total = 0
        self.resolved = 0
        self.pending = 0
        self.in_progress = 0
        self.hours_sum = 0
        self.hours_count = 0

    def add(self, report: ReportListItem) -> None:
        self.total += 1
        if report.status == ReportStatus.RESOLVED:
            self.resolved += 1
        elif report.status == ReportStatus.PENDING:
            self.pending += 1
        elif report.status == ReportStatus.IN_PROGRESS:
            self.in_progress += 1
        if report.resolution_time_hours is not None:
            self.hours_sum += report.resolution_time_hours
            self.hours_count += 1

    @property
    def avg_hours(self) -> Optional[float]:
        if self.hours_count == 0:
            return None
        return round1(self.hours_sum / self.hours_count)

    @property
    def avg_days(self) -> Optional[float]:
        if self.hours_count == 0:
            return None
        return round1(self.hours_sum / self.hours_count / HOURS_PER_DAY)

    @property
    def resolution_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return round1(self.resolved / self.total * 100)

    def base_fields(self) -> Dict:
        avg_hours = self.avg_hours
        return {
            "total_reports": self.total,
            "resolved_reports": self.resolved,
            "avg_resolution_hours": avg_hours,
            "avg_resolution_days": self.avg_days,
            "rating": rate_responsiveness(avg_hours),
        }

    def zipcode_stats(self, zipcode: str) -> ZipcodeStats:
        return ZipcodeStats(
            zipcode=zipcode,
            pending_reports=self.pending,
            in_progress_reports=self.in_progress,
            resolution_rate=self.resolution_rate,
            **self.base_fields(),
        )


def summarize_citywide(reports: Iterable[ReportListItem]) -> CitywideSummary:
    overall = _Tally()
    by_zipcode: Dict[str, _Tally] = {}
    for report in reports:
        overall.add(report)
        if report.zipcode:
            by_zipcode.setdefault(report.zipcode, _Tally()).add(report)

    zip_stats = [tally.zipcode_stats(zipcode) for zipcode, tally in by_zipcode.items()]
    zip_stats.sort(key=lambda s: (-s.total_reports, s.zipcode))
    return CitywideSummary(overall=ResolutionStats(**overall.base_fields()), by_zipcode=zip_stats)


def _department_sort_key(stats: DepartmentStats):
    # None averages sort after every number
    missing = stats.avg_resolution_hours is None
    return (missing, stats.avg_resolution_hours or 0.0, stats.department.value)


def summarize_zipcode(zipcode: str, reports: Iterable[ReportListItem]) -> ZipcodeDetail:
    overall = _Tally()
    by_department: Dict[Department, _Tally] = {}
    for report in reports:
        if report.zipcode != zipcode:
            continue
        overall.add(report)
        by_department.setdefault(report.department, _Tally()).add(report)

    departments = [
        DepartmentStats(department=department, **tally.base_fields())
        for department, tally in by_department.items()
    ]
    departments.sort(key=_department_sort_key)
    return ZipcodeDetail(
        zipcode=zipcode,
        overall=overall.zipcode_stats(zipcode),
        by_department=departments,
    )


class AnalyticsService:
    """Aggregation reads over the report store."""

    def __init__(self, store=None):
        if store is None:
            from app.services.report_store import get_report_store
            store = get_report_store()
        self.store = store

    def citywide_summary(self) -> CitywideSummary:
        summary = summarize_citywide(self.store.iter_reports())
        logger.info(
            f"Citywide summary: {summary.overall.total_reports} reports, "
            f"{len(summary.by_zipcode)} zipcodes"
        )
        return summary

    def zipcode_detail(self, zipcode: str) -> ZipcodeDetail:
        """
        Statistics for one zipcode, broken down by department.

        Raises:
            ValidationError: zipcode is not exactly 5 digits
        """
        if not is_valid_zipcode(zipcode):
            raise ValidationError("Invalid zipcode. Must be exactly 5 digits")
        return summarize_zipcode(zipcode, self.store.iter_reports(zipcode=zipcode))


# Global service instance
_analytics_service: Optional[AnalyticsService] = None


def get_analytics_service() -> AnalyticsService:
    """Get or create AnalyticsService singleton."""
    global _analytics_service
    if _analytics_service is None:
        _analytics_service = AnalyticsService()
    return _analytics_service
