"""
Firestore helpers: query filters and timestamp normalization.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from google.cloud.firestore_v1.base_query import FieldFilter


def where_filter(query, field_path: str, op_string: str, value):
    """
    Apply a where clause with the FieldFilter API (no positional-args
    deprecation warning).

    Usage:
        query = where_filter(collection, "status", "==", "pending")
        query = where_filter(query, "zipcode", "==", "77002")
    """
    return query.where(filter=FieldFilter(field_path, op_string, value))


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize stored timestamps to timezone-aware UTC datetimes.

    Firestore returns DatetimeWithNanoseconds (a datetime subclass); documents
    written by older tooling may hold ISO strings.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    return None
