"""Tests for the Featherless classifier and Gemini enricher adapters."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.core.errors import ProviderError, ProviderNotConfiguredError
from app.core.settings import Settings
from app.models.report import Department, IssueType
from app.services.providers.base import ProviderConfig
from app.services.providers.featherless_provider import FeatherlessClassifier
from app.services.providers.gemini_provider import GeminiEnricher, build_prompt, split_data_url
from app.services.providers.registry import build_classifier, build_enricher

from conftest import SAMPLE_IMAGE


def mock_response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text or json.dumps(body)
    if body is None:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = body
    return response


def chat_reply(content):
    return {"choices": [{"message": {"content": content}}]}


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def classifier():
    return FeatherlessClassifier(ProviderConfig(
        api_key="fk-test", base_url="https://api.featherless.test/v1/", model="llava", timeout_seconds=5,
    ))


@pytest.fixture
def enricher():
    return GeminiEnricher(ProviderConfig(
        api_key="g-test", base_url="https://gemini.test/v1beta", model="gemini-test", timeout_seconds=5,
    ))


class TestProviderConfig:
    """Tests for the configured/unconfigured contract."""

    def test_missing_key_is_disabled(self):
        config = ProviderConfig(api_key=None, base_url="https://x.test", model="m")
        assert not FeatherlessClassifier(config).is_enabled()

    def test_blank_base_url_is_disabled(self):
        config = ProviderConfig(api_key="k", base_url="  ", model="m")
        assert not GeminiEnricher(config).is_enabled()

    def test_unconfigured_classify_raises(self):
        classifier = FeatherlessClassifier(ProviderConfig(model="m"))
        with pytest.raises(ProviderNotConfiguredError):
            classifier.classify(SAMPLE_IMAGE)


class TestFeatherlessClassifier:
    """Tests for the OpenAI-compatible classifier."""

    def test_classify_success(self, classifier):
        reply = chat_reply('{"issueType": "Road Damage", "confidence": 0.91}')
        with patch("app.services.providers.base.requests.post", return_value=mock_response(body=reply)) as post:
            result = classifier.classify(SAMPLE_IMAGE)

        assert result.issue_type == IssueType.POTHOLE
        assert result.confidence == 0.91
        url = post.call_args.args[0]
        assert url == "https://api.featherless.test/v1/chat/completions"
        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer fk-test"
        assert kwargs["timeout"] == 5
        content = kwargs["json"]["messages"][0]["content"]
        assert content[1]["image_url"]["url"] == SAMPLE_IMAGE

    def test_timeout_is_provider_error(self, classifier):
        with patch("app.services.providers.base.requests.post", side_effect=requests.Timeout()):
            with pytest.raises(ProviderError, match="timed out"):
                classifier.classify(SAMPLE_IMAGE)

    def test_http_error_status(self, classifier):
        with patch("app.services.providers.base.requests.post",
                   return_value=mock_response(status_code=503, text="unavailable")):
            with pytest.raises(ProviderError, match="503"):
                classifier.classify(SAMPLE_IMAGE)

    def test_unparsable_content(self, classifier):
        reply = chat_reply("I think it is a pothole")
        with patch("app.services.providers.base.requests.post", return_value=mock_response(body=reply)):
            with pytest.raises(ProviderError, match="unparsable"):
                classifier.classify(SAMPLE_IMAGE)

    def test_missing_choices(self, classifier):
        with patch("app.services.providers.base.requests.post", return_value=mock_response(body={})):
            with pytest.raises(ProviderError):
                classifier.classify(SAMPLE_IMAGE)


class TestGeminiEnricher:
    """Tests for the Gemini generateContent enricher."""

    def test_enrich_success(self, enricher):
        text = '```json\n{"issueType": "trash", "confidence": 0.7, "summary": "Bags piled on the curb.", ' \
               '"severity": 7, "department": "sanitation", "reason": "Collection issue."}\n```'
        with patch("app.services.providers.base.requests.post",
                   return_value=mock_response(body=gemini_reply(text))) as post:
            result = enricher.enrich(SAMPLE_IMAGE, "bags everywhere")

        assert result.issue_type == IssueType.TRASH
        assert result.severity == 5
        assert result.department == Department.SANITATION
        assert result.summary == "Bags piled on the curb."
        assert post.call_args.args[0] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
        assert post.call_args.kwargs["headers"]["x-goog-api-key"] == "g-test"
        parts = post.call_args.kwargs["json"]["contents"][0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/png"

    def test_remote_url_rejected(self, enricher):
        with pytest.raises(ProviderError, match="data URL"):
            enricher.enrich("https://example.com/photo.jpg", "")

    def test_non_json_body(self, enricher):
        with patch("app.services.providers.base.requests.post",
                   return_value=mock_response(body=None, text="<html>")):
            with pytest.raises(ProviderError, match="not JSON"):
                enricher.enrich(SAMPLE_IMAGE, "")

    def test_connection_error(self, enricher):
        with patch("app.services.providers.base.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(ProviderError, match="request failed"):
                enricher.enrich(SAMPLE_IMAGE, "")


class TestPromptAndDataUrl:
    """Tests for prompt construction helpers."""

    def test_split_data_url(self):
        assert split_data_url("data:image/jpeg;base64,abc123") == ("image/jpeg", "abc123")
        assert split_data_url("https://example.com/a.jpg") is None

    def test_prompt_includes_description(self):
        assert '"Broken lamp on 5th"' in build_prompt("Broken lamp on 5th")

    def test_prompt_includes_hint(self):
        prompt = build_prompt("", hint=IssueType.GRAFFITI)
        assert 'suggested the category "graffiti"' in prompt
        assert "suggested the category" not in build_prompt("")


class TestRegistry:
    """Tests for building adapters from settings."""

    def test_ai_disabled_builds_nothing(self):
        config = Settings(AI_ENABLED=False)
        assert build_classifier(config) is None
        assert build_enricher(config) is None

    def test_adapters_built_from_settings(self):
        config = Settings(
            AI_ENABLED=True,
            GEMINI_API_KEY="g",
            FEATHERLESS_API_KEY="f",
            FEATHERLESS_BASE_URL="https://api.featherless.test/v1",
            AI_TIMEOUT_SECONDS=12,
        )
        classifier = build_classifier(config)
        enricher = build_enricher(config)
        assert classifier.is_enabled()
        assert enricher.is_enabled()
        assert enricher.config.timeout_seconds == 12
