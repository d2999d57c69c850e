"""
Gemini Enricher - real LLM integration for report enrichment.

Calls the Gemini generateContent REST API with the photo as inline data and
asks for classification, severity, department routing and a resident-facing
summary. Its answer is authoritative for the persisted record.
"""

from typing import Optional, Tuple
import logging
import re

from app.core.errors import ProviderError, ProviderNotConfiguredError
from app.models.report import IssueType
from app.services.providers.base import EnricherProvider, EnrichmentResult
from app.services.sanitize import extract_json_object, sanitize_enrichment

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)


def split_data_url(image_ref: str) -> Optional[Tuple[str, str]]:
    """Return (mime_type, base64_data) for a data URL, else None."""
    match = _DATA_URL_RE.match(image_ref or "")
    if not match:
        return None
    return match.group(1), match.group(2)


def build_prompt(description: str, hint: Optional[IssueType] = None) -> str:
    hint_block = ""
    if hint is not None:
        hint_block = (
            f"- An automated image classifier suggested the category \"{hint.value}\". "
            "Keep it only if the image supports it.\n"
        )

    return f"""You are an AI assistant for a city's neighborhood issue reporting system.

CONTEXT:
- A resident submitted a photo of a local issue
- User's description (if any): "{description or 'None provided'}"
{hint_block}
TASK:
Analyze the image and provide a JSON response with exactly these fields:

{{
  "issueType": "<one of: pothole, trash, graffiti, streetlight, other>",
  "confidence": <0.0-1.0>,
  "summary": "<1-2 sentence description for residents. Be specific about what you see and the potential impact. Use plain language.>",
  "severity": <1-5 integer>,
  "department": "<one of: public_works, sanitation, parks, utilities, police_non_emergency, general>",
  "reason": "<1 sentence explaining why this department should handle it>"
}}

ISSUE TYPE CLASSIFICATION:
- pothole: road damage, cracks, holes in pavement, sidewalk damage
- trash: garbage, litter, overflowing bins, illegal dumping
- graffiti: spray paint, vandalism, tags on walls/surfaces
- streetlight: broken lights, damaged poles, dark areas
- other: none of the above

SEVERITY SCALE:
1 = Minor cosmetic issue, no safety concern
2 = Nuisance but not urgent
3 = Should be addressed within a week
4 = Potential safety hazard, needs attention soon
5 = Immediate danger to public safety

DEPARTMENT ROUTING:
- public_works: roads, sidewalks, potholes, streetlights, traffic signals
- sanitation: trash, illegal dumping, overflowing bins
- parks: park damage, fallen trees, playground issues
- utilities: water leaks, exposed wiring, manhole covers
- police_non_emergency: graffiti, vandalism, abandoned vehicles
- general: unclear or multiple departments needed

RULES:
- Classify based on what you actually see in the image
- Keep summary under 50 words
- Be helpful and empathetic in tone

Respond with ONLY valid JSON, no markdown formatting."""


class GeminiEnricher(EnricherProvider):
    """
    Google Gemini provider for report enrichment.

    Requires an API key in its ProviderConfig. The photo must be a base64
    data URL since it is sent inline.
    """

    PROVIDER_NAME = "gemini"

    def enrich(
        self,
        image_ref: str,
        description: str,
        hint: Optional[IssueType] = None,
    ) -> EnrichmentResult:
        if not self.is_enabled():
            raise ProviderNotConfiguredError(self.PROVIDER_NAME)

        inline = split_data_url(image_ref)
        if inline is None:
            raise ProviderError(self.PROVIDER_NAME, "imageRef is not a base64 data URL")
        mime_type, base64_data = inline

        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
        headers = {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }
        payload = {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": base64_data}},
                    {"text": build_prompt(description, hint)},
                ]
            }]
        }

        data = self._post_json(url, payload, headers)

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(self.PROVIDER_NAME, "no text in response")

        parsed = extract_json_object(text)
        if not parsed.ok:
            logger.debug(f"Gemini raw text: {text!r}")
            raise ProviderError(self.PROVIDER_NAME, f"unparsable response ({parsed.error})")

        fields = sanitize_enrichment(parsed.payload)
        return EnrichmentResult(model_name=self.config.model, **fields)
