"""
Featherless Classifier - image classification over an OpenAI-compatible
chat completions endpoint (vision model).

Only produces a coarse category + confidence.
"""

from app.core.errors import ProviderError, ProviderNotConfiguredError
from app.services.providers.base import ClassificationResult, ClassifierProvider
from app.services.sanitize import extract_json_object, sanitize_classification
import logging

logger = logging.getLogger(__name__)


CLASSIFY_PROMPT = """Classify this image into exactly ONE of these categories:
- pothole (road damage, cracks, holes in pavement)
- trash (litter, overflowing bins, illegal dumping)
- graffiti (spray paint, vandalism, tagging)
- streetlight (broken/flickering lights, damaged poles)
- other (none of the above)

Respond with JSON only: {"issueType": "<category>", "confidence": <0.0-1.0>}"""


class FeatherlessClassifier(ClassifierProvider):
    """
    Classifier backed by Featherless (or any OpenAI-compatible host).

    Requires api_key and base_url in its ProviderConfig.
    """

    PROVIDER_NAME = "featherless"
    MAX_TOKENS = 100

    def classify(self, image_ref: str) -> ClassificationResult:
        if not self.is_enabled():
            raise ProviderNotConfiguredError(self.PROVIDER_NAME)

        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": CLASSIFY_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_ref}},
                    ],
                }
            ],
            "max_tokens": self.MAX_TOKENS,
        }

        data = self._post_json(url, payload, headers)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.PROVIDER_NAME, "no message content in response")

        parsed = extract_json_object(content)
        if not parsed.ok:
            logger.debug(f"Featherless raw content: {content!r}")
            raise ProviderError(self.PROVIDER_NAME, f"unparsable response ({parsed.error})")

        fields = sanitize_classification(parsed.payload)
        return ClassificationResult(
            issue_type=fields["issue_type"],
            confidence=fields["confidence"],
            model_name=self.config.model,
        )
