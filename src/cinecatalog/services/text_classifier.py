"""Best-effort free-text title classifier backed by the Gemini API."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from cinecatalog.config import settings

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Extract film title information from this cinema screening listing.

Listing: "{raw_title}"

Return ONLY a JSON object (no markdown) with:
- title: The film title, without event framing, certificates or format notes
- year: The release year if the listing states it, otherwise null
- confidence: "high" if you are sure this is the film title, otherwise "low"

Keep legitimate subtitles and version suffixes such as "Final Cut" in the title.

Examples:
- "Saturday Morning Picture Club: The Muppets Christmas Carol" -> {{"title": "The Muppets Christmas Carol", "year": null, "confidence": "high"}}
- "35mm: Casablanca (PG)" -> {{"title": "Casablanca", "year": null, "confidence": "high"}}
- "Apocalypse Now : Final Cut" -> {{"title": "Apocalypse Now : Final Cut", "year": null, "confidence": "high"}}"""

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


@dataclass(frozen=True)
class ClassifierResult:
    """A cleaned title recovered by the classifier."""

    clean_title: str
    year: int | None
    confidence: str  # "high" or "low"


@dataclass(frozen=True)
class ClassifierUnavailable:
    """The classifier could not produce a usable answer."""

    reason: str


class TextClassifier:
    """
    Client for the Gemini generateContent endpoint.

    classify() never raises: every failure is returned as a
    ClassifierUnavailable so callers can fall back to the regex result.
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        limiter: AsyncLimiter | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.limiter = limiter or AsyncLimiter(
            settings.classifier_rate_limit, settings.classifier_rate_period
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def classify(self, raw_title: str) -> ClassifierResult | ClassifierUnavailable:
        """
        Ask the model for the film title hidden in a listing title.

        Args:
            raw_title: Listing title as scraped

        Returns:
            ClassifierResult on success, ClassifierUnavailable otherwise
        """
        if not self.enabled:
            return ClassifierUnavailable("classifier API key not configured")

        payload = {
            "contents": [{"parts": [{"text": PROMPT_TEMPLATE.format(raw_title=raw_title)}]}],
            "generationConfig": {"responseMimeType": "application/json", "temperature": 0},
        }

        try:
            async with self.limiter:
                async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
                    response = await client.post(
                        f"{self.BASE_URL}/models/{self.model}:generateContent",
                        params={"key": self.api_key},
                        json=payload,
                    )
                    response.raise_for_status()
                    data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Classifier request failed for '{raw_title}': {e}")
            return ClassifierUnavailable(f"transport error: {e}")
        except ValueError as e:
            return ClassifierUnavailable(f"invalid response body: {e}")

        return self._parse_response(data)

    def _parse_response(self, data: dict[str, Any]) -> ClassifierResult | ClassifierUnavailable:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return ClassifierUnavailable("response has no text candidate")

        try:
            parsed = json.loads(CODE_FENCE_RE.sub("", text.strip()))
        except ValueError:
            return ClassifierUnavailable("model output is not JSON")

        if not isinstance(parsed, dict):
            return ClassifierUnavailable("model output is not a JSON object")

        title = parsed.get("title")
        if not isinstance(title, str) or not title.strip():
            return ClassifierUnavailable("model output has no title")

        year = parsed.get("year")
        if not isinstance(year, int) or isinstance(year, bool) or not 1880 <= year <= 2100:
            year = None

        confidence = "high" if parsed.get("confidence") == "high" else "low"
        return ClassifierResult(clean_title=title.strip(), year=year, confidence=confidence)
