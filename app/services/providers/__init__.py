"""
AI provider adapters.

Two independent remote services, each configured explicitly at startup:
- FeatherlessClassifier: image -> coarse category
- GeminiEnricher: image + description -> full enrichment
"""

from app.services.providers.base import (
    ClassificationResult,
    ClassifierProvider,
    EnricherProvider,
    EnrichmentResult,
    ProviderConfig,
)
from app.services.providers.featherless_provider import FeatherlessClassifier
from app.services.providers.gemini_provider import GeminiEnricher
from app.services.providers.registry import get_classifier, get_enricher

__all__ = [
    "ClassificationResult",
    "ClassifierProvider",
    "EnricherProvider",
    "EnrichmentResult",
    "FeatherlessClassifier",
    "GeminiEnricher",
    "ProviderConfig",
    "get_classifier",
    "get_enricher",
]
