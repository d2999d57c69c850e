"""
Geospatial query engine - bounding-box containment and radius filtering.

Pure functions over an already-fetched candidate set; the store supplies
candidates (optionally pre-filtered by status).
"""

from typing import Iterable, List, Optional, Tuple
import math

from app.core.errors import ValidationError
from app.models.report import Location, ReportListItem, ReportStatus

EARTH_RADIUS_KM = 6371.0

BBox = Tuple[float, float, float, float]  # (sw_lng, sw_lat, ne_lng, ne_lat)


def is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_bbox(raw: str) -> BBox:
    """
    Parse "swLng,swLat,neLng,neLat".

    Raises:
        ValidationError: wrong arity, a non-finite or out-of-range bound,
            or south latitude above north latitude
    """
    parts = [part.strip() for part in (raw or "").split(",")]
    if len(parts) != 4:
        raise ValidationError("Invalid bbox format. Expected bbox=swLng,swLat,neLng,neLat")
    try:
        values = [float(part) for part in parts]
    except ValueError:
        raise ValidationError("Invalid bbox format. Bounds must be numbers")
    sw_lng, sw_lat, ne_lng, ne_lat = values
    validate_bbox(sw_lng, sw_lat, ne_lng, ne_lat)
    return sw_lng, sw_lat, ne_lng, ne_lat


def validate_bbox(sw_lng: float, sw_lat: float, ne_lng: float, ne_lat: float) -> None:
    if not all(is_finite_number(v) for v in (sw_lng, sw_lat, ne_lng, ne_lat)):
        raise ValidationError("Invalid bbox. All four bounds must be finite numbers")
    if not all(-90.0 <= v <= 90.0 for v in (sw_lat, ne_lat)):
        raise ValidationError("Invalid bbox. Latitudes must be in [-90, 90]")
    if not all(-180.0 <= v <= 180.0 for v in (sw_lng, ne_lng)):
        raise ValidationError("Invalid bbox. Longitudes must be in [-180, 180]")
    if sw_lat > ne_lat:
        raise ValidationError("Invalid bbox. South latitude must not exceed north latitude")


def in_bbox(location: Location, sw_lng: float, sw_lat: float, ne_lng: float, ne_lat: float) -> bool:
    """
    Closed-rectangle containment (edges included).
    A box whose west edge is east of its east edge spans the antimeridian.
    """
    if not (sw_lat <= location.lat <= ne_lat):
        return False
    if sw_lng <= ne_lng:
        return sw_lng <= location.lng <= ne_lng
    return location.lng >= sw_lng or location.lng <= ne_lng


def _newest_first_key(report: ReportListItem) -> Tuple[float, str]:
    return (-report.created_at.timestamp(), report.id)


def find_in_bbox(
    candidates: Iterable[ReportListItem],
    sw_lng: float,
    sw_lat: float,
    ne_lng: float,
    ne_lat: float,
    status: Optional[ReportStatus] = None,
    limit: int = 100,
) -> List[ReportListItem]:
    """
    Reports inside the rectangle, newest first, at most `limit`.

    Raises:
        ValidationError: any bound not finite
    """
    validate_bbox(sw_lng, sw_lat, ne_lng, ne_lat)
    matches = [
        report for report in candidates
        if (status is None or report.status == status)
        and in_bbox(report.location, sw_lng, sw_lat, ne_lng, ne_lat)
    ]
    matches.sort(key=_newest_first_key)
    return matches[:max(0, limit)]


def validate_radius(radius_km) -> None:
    if not is_finite_number(radius_km) or radius_km < 0:
        raise ValidationError("radiusKm must be a non-negative finite number")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance on a sphere of mean Earth radius."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Float rounding can push a past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearby(
    center: Location,
    candidates: Iterable[ReportListItem],
    radius_km: float = 10.0,
) -> List[Tuple[ReportListItem, float]]:
    """
    Candidates within radius_km of center as (report, distance_km) pairs,
    nearest first. Equal distances fall back to newest first, then id.
    """
    validate_radius(radius_km)

    within: List[Tuple[ReportListItem, float]] = []
    for report in candidates:
        distance = haversine_km(center.lat, center.lng, report.location.lat, report.location.lng)
        if distance <= radius_km:
            within.append((report, distance))

    within.sort(key=lambda pair: (pair[1], -pair[0].created_at.timestamp(), pair[0].id))
    return within


def bbox_around(center: Location, radius_km: float) -> BBox:
    """
    Smallest lat/lng rectangle containing the spherical cap (center, radius_km).
    Used to narrow candidates before the exact Haversine filter.
    """
    # Slight padding so points exactly on the circle survive float error
    angular = radius_km / EARTH_RADIUS_KM * 1.000001
    dlat = math.degrees(angular)
    sw_lat = center.lat - dlat
    ne_lat = center.lat + dlat
    if sw_lat <= -90.0 or ne_lat >= 90.0:
        # The cap contains a pole: every longitude qualifies
        return -180.0, max(-90.0, sw_lat), 180.0, min(90.0, ne_lat)

    ratio = math.sin(angular) / math.cos(math.radians(center.lat))
    if ratio >= 1.0:
        return -180.0, sw_lat, 180.0, ne_lat
    dlng = math.degrees(math.asin(ratio))

    sw_lng = center.lng - dlng
    ne_lng = center.lng + dlng
    if sw_lng < -180.0:
        sw_lng += 360.0
    if ne_lng > 180.0:
        ne_lng -= 360.0
    return sw_lng, sw_lat, ne_lng, ne_lat

