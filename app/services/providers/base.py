"""
AI Provider Base Interface.

Defines the contract for the two remote AI services:
- Classifier: image -> coarse issue category
- Enricher: image + description -> classification, severity, routing, summary

Adapters raise ProviderError on any failure (unconfigured, network, timeout,
unparsable reply). Callers that must not fail catch it and fall back.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

import requests
from pydantic import BaseModel

from app.core.errors import ProviderError
from app.models.report import Department, IssueType

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """
    Explicit configuration handed to an adapter at startup.
    A config without credentials is valid; the adapter simply reports
    itself as disabled.
    """
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str
    timeout_seconds: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(
            self.api_key and self.api_key.strip()
            and self.base_url and self.base_url.strip()
        )


class ClassificationResult:
    """Standardized Classifier response (already sanitized)."""

    def __init__(
        self,
        issue_type: IssueType,
        confidence: float,
        model_name: str,
        inference_timestamp: Optional[datetime] = None,
    ):
        self.issue_type = issue_type
        self.confidence = confidence
        self.model_name = model_name
        self.inference_timestamp = inference_timestamp or datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_type": self.issue_type.value,
            "confidence": self.confidence,
            "model_name": self.model_name,
            "inference_timestamp": self.inference_timestamp.isoformat(),
        }


class EnrichmentResult:
    """Standardized Enricher response (already sanitized)."""

    def __init__(
        self,
        issue_type: IssueType,
        confidence: float,
        summary: str,
        severity: int,
        department: Department,
        reason: str,
        model_name: str,
        inference_timestamp: Optional[datetime] = None,
    ):
        self.issue_type = issue_type
        self.confidence = confidence
        self.summary = summary
        self.severity = severity
        self.department = department
        self.reason = reason
        self.model_name = model_name
        self.inference_timestamp = inference_timestamp or datetime.now(timezone.utc)


class _HTTPProvider:
    """Shared HTTP plumbing for adapters that speak JSON over requests."""

    PROVIDER_NAME = "provider"

    def __init__(self, config: ProviderConfig):
        self.config = config

    def is_enabled(self) -> bool:
        return self.config.is_configured

    def get_model_info(self) -> Dict[str, str]:
        return {"provider": self.PROVIDER_NAME, "name": self.config.model}

    def _post_json(self, url: str, payload: Dict, headers: Optional[Dict[str, str]] = None) -> Dict:
        """POST a JSON body; every failure mode becomes a ProviderError."""
        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers or {},
                timeout=self.config.timeout_seconds,
            )
        except requests.Timeout:
            raise ProviderError(
                self.PROVIDER_NAME, f"timed out after {self.config.timeout_seconds}s"
            )
        except requests.RequestException as e:
            raise ProviderError(self.PROVIDER_NAME, f"request failed: {e}")

        if response.status_code != 200:
            raise ProviderError(
                self.PROVIDER_NAME,
                f"returned status {response.status_code}: {response.text[:200]}",
            )

        try:
            data = response.json()
        except ValueError:
            raise ProviderError(self.PROVIDER_NAME, "response body is not JSON")
        if not isinstance(data, dict):
            raise ProviderError(self.PROVIDER_NAME, "response body is not a JSON object")
        return data


class ClassifierProvider(_HTTPProvider, ABC):
    """Image -> coarse category."""

    @abstractmethod
    def classify(self, image_ref: str) -> ClassificationResult:
        """
        Classify a photo.

        Raises:
            ProviderError: on any failure, including missing configuration
        """


class EnricherProvider(_HTTPProvider, ABC):
    """Image + free text -> full enrichment."""

    @abstractmethod
    def enrich(
        self,
        image_ref: str,
        description: str,
        hint: Optional[IssueType] = None,
    ) -> EnrichmentResult:
        """
        Produce classification, severity, routing and a summary.

        Args:
            image_ref: photo reference
            description: citizen's text (may be empty)
            hint: optional category suggested by the Classifier; the Enricher
                may keep or override it

        Raises:
            ProviderError: on any failure, including missing configuration
        """
