"""
Pydantic models for citizen reports.
These models handle validation for report submission and responses.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from app.models.base import CamelModel


class IssueType(str, Enum):
    """Closed set of issue categories. Provider text never lands here raw."""
    POTHOLE = "pothole"
    TRASH = "trash"
    GRAFFITI = "graffiti"
    STREETLIGHT = "streetlight"
    OTHER = "other"


class Department(str, Enum):
    """Municipal units a report can be routed to."""
    PUBLIC_WORKS = "public_works"
    SANITATION = "sanitation"
    PARKS = "parks"
    UTILITIES = "utilities"
    POLICE_NON_EMERGENCY = "police_non_emergency"
    GENERAL = "general"


class ReportStatus(str, Enum):
    """
    Report lifecycle states.

    Typical order: pending → acknowledged → in_progress → resolved.
    Ordering is not enforced; resolved is the only state with a side effect.
    """
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class Location(CamelModel):
    """A WGS84 point."""
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class ReportCreate(CamelModel):
    """
    Model for creating a new report (incoming POST request).
    These are the fields citizens provide when submitting a report.
    """
    image_ref: str = Field(..., min_length=1, description="Photo as a data URL or remote URL")
    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    description: Optional[str] = Field(None, max_length=2000, description="What the citizen observed")
    address: Optional[str] = Field(None, max_length=500, description="Free-text street address")

    class Config:
        json_schema_extra = {
            "example": {
                "imageRef": "data:image/jpeg;base64,/9j/4AAQSkZJRg...",
                "lat": 29.7604,
                "lng": -95.3698,
                "description": "Deep pothole in the right lane",
                "address": "500 Main St, Houston, TX 77002",
            }
        }
        extra = "ignore"

    @field_validator("image_ref")
    @classmethod
    def _image_ref_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("imageRef is required")
        return value


class ReportListItem(CamelModel):
    """
    Report projection used by list, bbox and nearby queries.
    Excludes the image for performance.
    """
    id: str
    description: str = ""
    location: Location
    address: str = ""
    zipcode: str = ""
    issue_type: IssueType = IssueType.OTHER
    confidence: float = Field(0.0, ge=0, le=1)
    summary: str = Field("", max_length=500)
    severity: int = Field(3, ge=1, le=5)
    department: Department = Department.GENERAL
    reason: str = Field("", max_length=200)
    status: ReportStatus = ReportStatus.PENDING
    classification_failed: bool = False
    enrichment_failed: bool = False
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    resolution_time_hours: Optional[int] = None


class Report(ReportListItem):
    """Full stored report, returned on single-record fetch."""
    image_ref: str

    def to_list_item(self) -> ReportListItem:
        return ReportListItem(**self.model_dump(exclude={"image_ref"}))


class NearbyReport(ReportListItem):
    """A report annotated with its distance from a query center."""
    distance_km: float


class StatusUpdateRequest(CamelModel):
    """Body of PATCH /reports/{id}/status. Membership is checked by the service."""
    status: str = Field(..., description="One of pending, acknowledged, in_progress, resolved")


class StatusUpdateResponse(CamelModel):
    id: str
    status: ReportStatus
    resolved_at: Optional[datetime] = None
    resolution_time_hours: Optional[int] = None
    updated_at: datetime

    @classmethod
    def from_report(cls, report: Report) -> "StatusUpdateResponse":
        return cls(
            id=report.id,
            status=report.status,
            resolved_at=report.resolved_at,
            resolution_time_hours=report.resolution_time_hours,
            updated_at=report.updated_at,
        )
