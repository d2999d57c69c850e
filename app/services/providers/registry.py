"""
AI Provider Registry.

Builds the Classifier and Enricher adapters from settings once at startup,
so adapters never read the environment themselves.
"""

from typing import Optional
import logging

from app.core.settings import Settings, settings
from app.services.providers.base import ClassifierProvider, EnricherProvider, ProviderConfig
from app.services.providers.featherless_provider import FeatherlessClassifier
from app.services.providers.gemini_provider import GeminiEnricher

logger = logging.getLogger(__name__)


def build_classifier(config: Settings) -> Optional[ClassifierProvider]:
    """Return the Classifier adapter, or None when AI is globally disabled."""
    if not config.AI_ENABLED:
        logger.info("⚠️ AI is disabled globally (AI_ENABLED=false), no classifier")
        return None

    classifier = FeatherlessClassifier(ProviderConfig(
        api_key=config.FEATHERLESS_API_KEY,
        base_url=config.FEATHERLESS_BASE_URL,
        model=config.FEATHERLESS_MODEL,
        timeout_seconds=config.AI_TIMEOUT_SECONDS,
    ))
    if classifier.is_enabled():
        logger.info(f"✅ Classifier registered: {classifier.get_model_info()['name']}")
    else:
        logger.info("⚠️ Classifier not configured (FEATHERLESS_API_KEY/FEATHERLESS_BASE_URL missing)")
    return classifier


def build_enricher(config: Settings) -> Optional[EnricherProvider]:
    """Return the Enricher adapter, or None when AI is globally disabled."""
    if not config.AI_ENABLED:
        logger.info("⚠️ AI is disabled globally (AI_ENABLED=false), no enricher")
        return None

    enricher = GeminiEnricher(ProviderConfig(
        api_key=config.GEMINI_API_KEY,
        base_url=config.GEMINI_BASE_URL,
        model=config.GEMINI_MODEL,
        timeout_seconds=config.AI_TIMEOUT_SECONDS,
    ))
    if enricher.is_enabled():
        logger.info(f"✅ Enricher registered: {enricher.get_model_info()['name']}")
    else:
        logger.info("⚠️ Enricher not configured (GEMINI_API_KEY missing)")
    return enricher


# Global adapter instances (singletons)
_classifier: Optional[ClassifierProvider] = None
_enricher: Optional[EnricherProvider] = None
_initialized = False


def _ensure_initialized():
    global _classifier, _enricher, _initialized
    if not _initialized:
        _classifier = build_classifier(settings)
        _enricher = build_enricher(settings)
        _initialized = True


def get_classifier() -> Optional[ClassifierProvider]:
    _ensure_initialized()
    return _classifier


def get_enricher() -> Optional[EnricherProvider]:
    _ensure_initialized()
    return _enricher
