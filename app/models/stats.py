"""
Response models for resolution-performance statistics.
"""

from enum import Enum
from typing import List, Optional

from app.models.base import CamelModel
from app.models.report import Department


class ResponsivenessRating(str, Enum):
    """Bucket for an average resolution time (hours)."""
    EXCELLENT = "excellent"  # <= 24h
    GOOD = "good"            # <= 48h
    AVERAGE = "average"      # <= 72h
    SLOW = "slow"            # <= 168h
    VERY_SLOW = "very_slow"


class ResolutionStats(CamelModel):
    total_reports: int = 0
    resolved_reports: int = 0
    avg_resolution_hours: Optional[float] = None
    avg_resolution_days: Optional[float] = None
    rating: Optional[ResponsivenessRating] = None


class ZipcodeStats(ResolutionStats):
    zipcode: str
    pending_reports: int = 0
    in_progress_reports: int = 0
    resolution_rate: float = 0.0


class DepartmentStats(ResolutionStats):
    department: Department


class CitywideSummary(CamelModel):
    overall: ResolutionStats
    by_zipcode: List[ZipcodeStats]


class ZipcodeDetail(CamelModel):
    zipcode: str
    overall: ZipcodeStats
    by_department: List[DepartmentStats]
