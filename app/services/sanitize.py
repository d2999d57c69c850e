"""
Parse-and-sanitize step for AI provider output.

Providers return loosely-typed, JSON-ish text. Everything here is total:
functions return a tagged ParseResult or a clamped/defaulted value and
never raise, so nothing a model says can reach storage unchecked.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.models.enrichment import FALLBACK_SUMMARY
from app.models.report import Department, IssueType

logger = logging.getLogger(__name__)

SUMMARY_MAX_LENGTH = 500
REASON_MAX_LENGTH = 200
DEFAULT_SEVERITY = 3
CLASSIFICATION_DEFAULT_CONFIDENCE = 0.0
ENRICHMENT_DEFAULT_CONFIDENCE = 0.8

ISSUE_TYPE_ALIASES: Dict[str, IssueType] = {
    "road_damage": IssueType.POTHOLE,
    "road damage": IssueType.POTHOLE,
    "crack": IssueType.POTHOLE,
    "pavement": IssueType.POTHOLE,
    "sidewalk": IssueType.POTHOLE,
    "litter": IssueType.TRASH,
    "garbage": IssueType.TRASH,
    "rubbish": IssueType.TRASH,
    "dumping": IssueType.TRASH,
    "debris": IssueType.TRASH,
    "vandalism": IssueType.GRAFFITI,
    "spray_paint": IssueType.GRAFFITI,
    "tagging": IssueType.GRAFFITI,
    "broken_light": IssueType.STREETLIGHT,
    "light": IssueType.STREETLIGHT,
    "lamp": IssueType.STREETLIGHT,
    "street_light": IssueType.STREETLIGHT,
}

# Substring fallback: canonical names plus aliases, longest key first so that
# "broken_light" wins over "light".
_SUBSTRING_KEYS = sorted(
    [(issue.value, issue) for issue in IssueType if issue is not IssueType.OTHER]
    + list(ISSUE_TYPE_ALIASES.items()),
    key=lambda item: len(item[0]),
    reverse=True,
)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


@dataclass
class ParseResult:
    """Tagged outcome of pulling a JSON object out of provider text."""
    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def extract_json_object(text: Any) -> ParseResult:
    """
    Find the JSON object inside a model reply.

    Models sometimes wrap JSON in markdown fences or surround it with prose,
    so fences are stripped and the outermost {...} span is parsed.
    """
    if not isinstance(text, str) or not text.strip():
        return ParseResult(error="empty response")

    if "```json" in text:
        text = text.split("```json", 1)[1].split("```", 1)[0]
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 3:
            text = parts[1]

    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return ParseResult(error="no JSON object in response")

    try:
        parsed = json.loads(match.group(0))
    except ValueError as e:
        return ParseResult(error=f"invalid JSON: {e}")

    if not isinstance(parsed, dict):
        return ParseResult(error="JSON payload is not an object")
    return ParseResult(payload=parsed)


def normalize_issue_type(raw: Any) -> IssueType:
    """Map free provider text onto the closed IssueType set."""
    if not isinstance(raw, str):
        return IssueType.OTHER
    value = raw.strip().lower()
    if not value:
        return IssueType.OTHER

    try:
        return IssueType(value)
    except ValueError:
        pass

    if value in ISSUE_TYPE_ALIASES:
        return ISSUE_TYPE_ALIASES[value]

    for key, issue_type in _SUBSTRING_KEYS:
        if key in value:
            return issue_type
    return IssueType.OTHER


def _to_finite_float(raw: Any) -> Optional[float]:
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_confidence(raw: Any, default: float) -> float:
    """Parse as float and clamp to [0, 1]; unparsable values use the default."""
    value = _to_finite_float(raw)
    if value is None:
        return default
    return min(1.0, max(0.0, value))


def parse_severity(raw: Any) -> int:
    """Parse as integer and clamp to [1, 5]; unparsable values become 3."""
    value = _to_finite_float(raw)
    if value is None:
        return DEFAULT_SEVERITY
    return min(5, max(1, int(value)))


def normalize_department(raw: Any) -> Department:
    if not isinstance(raw, str):
        return Department.GENERAL
    try:
        return Department(raw.strip().lower())
    except ValueError:
        return Department.GENERAL


def clean_summary(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        return FALLBACK_SUMMARY
    return raw.strip()[:SUMMARY_MAX_LENGTH]


def clean_reason(raw: Any) -> str:
    if not isinstance(raw, str):
        return ""
    return raw.strip()[:REASON_MAX_LENGTH]


def sanitize_classification(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize a Classifier payload into issue_type/confidence."""
    return {
        "issue_type": normalize_issue_type(payload.get("issueType")),
        "confidence": parse_confidence(payload.get("confidence"), CLASSIFICATION_DEFAULT_CONFIDENCE),
    }


def sanitize_enrichment(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize an Enricher payload into the six authoritative fields."""
    return {
        "issue_type": normalize_issue_type(payload.get("issueType")),
        "confidence": parse_confidence(payload.get("confidence"), ENRICHMENT_DEFAULT_CONFIDENCE),
        "summary": clean_summary(payload.get("summary")),
        "severity": parse_severity(payload.get("severity")),
        "department": normalize_department(payload.get("department")),
        "reason": clean_reason(payload.get("reason")),
    }
