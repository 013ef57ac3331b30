"""
Flower Analysis Client

Integrates with Google Gemini (generateContent) for flower identification.
One image in, one normalized FlowerAnalysis out.
"""

import base64
import json
import logging
from typing import Any, Dict, Optional

import httpx

from .models import FloraBatchError, FlowerAnalysis, SourceImage, utcnow

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class AnalysisError(FloraBatchError):
    """Raised when the vision service returns no usable analysis."""
    pass


class GeminiFlowerClient:
    """
    Interface to Gemini for flower identification.

    Handles image encoding, API communication and result normalization.
    Transport errors propagate unchanged; the caller decides how to record them.
    """

    PROMPT = (
        "Analyze this image. Identify the flower species and its native geographic origin."
    )

    RESPONSE_SCHEMA = {
        "type": "OBJECT",
        "properties": {
            "flowerName": {
                "type": "STRING",
                "description": "The common name of the flower identified in the image.",
            },
            "geographicArea": {
                "type": "STRING",
                "description": (
                    "The primary geographic region or continent where this flower "
                    "is natively most widespread."
                ),
            },
            "confidence": {
                "type": "NUMBER",
                "description": "A confidence score between 0 and 100 representing certainty.",
            },
        },
        "required": ["flowerName", "geographicArea", "confidence"],
    }

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key, sent as the x-goog-api-key header
            model: Model name (e.g., "gemini-2.5-flash")
            base_url: API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            timeout=timeout,
            headers={"x-goog-api-key": api_key.strip()},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings, model: Optional[str] = None) -> "GeminiFlowerClient":
        """Build a client from a Settings instance."""
        return cls(
            api_key=settings.gemini_api_key,
            model=model or settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.request_timeout_seconds,
        )

    @staticmethod
    def _encode_image(image: SourceImage) -> str:
        """Encode image bytes to base64 for the inline_data part."""
        return base64.b64encode(image.read_bytes()).decode("utf-8")

    def _build_payload(self, image: SourceImage) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": image.mime_type,
                                "data": self._encode_image(image),
                            }
                        },
                        {"text": self.PROMPT},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.RESPONSE_SCHEMA,
            },
        }

    def _call_api(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a generateContent request.

        Raises:
            AnalysisError: On a non-2xx response
            httpx.HTTPError: On transport failures
        """
        response = self.client.post(
            f"{self.base_url}/models/{self.model}:generateContent",
            json=payload,
        )
        if response.is_error:
            detail = ""
            try:
                detail = response.json().get("error", {}).get("message", "")
            except (ValueError, AttributeError):
                pass
            logger.error(f"Gemini API error ({response.status_code}): {detail or response.reason_phrase}")
            raise AnalysisError(
                f"Gemini API error ({response.status_code}): {detail or response.reason_phrase}"
            )
        return response.json()

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        """Pull the generated text out of the first candidate."""
        candidates = data.get("candidates") or []
        if not candidates:
            raise AnalysisError("No response text from Gemini")
        try:
            parts = candidates[0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisError(f"Unexpected Gemini response structure: {e}") from e
        if not text.strip():
            raise AnalysisError("No response text from Gemini")
        return text

    @staticmethod
    def _clean_string(value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return UNKNOWN

    @staticmethod
    def _clean_confidence(value: Any) -> float:
        if isinstance(value, bool):
            return 0.0
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return 0.0
        if confidence != confidence:  # NaN
            return 0.0
        return min(max(confidence, 0.0), 100.0)

    def _parse_analysis(self, file_name: str, text: str) -> FlowerAnalysis:
        """
        Parse the structured JSON answer, defaulting missing fields.

        Raises:
            AnalysisError: If the text is not a JSON object
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Gemini returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise AnalysisError("Gemini returned JSON that is not an object")

        return FlowerAnalysis(
            file_name=file_name,
            flower_name=self._clean_string(data.get("flowerName")),
            geographic_area=self._clean_string(data.get("geographicArea")),
            confidence=self._clean_confidence(data.get("confidence")),
            timestamp=utcnow(),
        )

    def analyze(self, image: SourceImage) -> FlowerAnalysis:
        """
        Identify the flower in one image.

        Args:
            image: Source image handle

        Returns:
            FlowerAnalysis with normalized fields

        Raises:
            AnalysisError: If the service answers without a usable body
            httpx.HTTPError: On network failures
        """
        logger.info(f"Analyzing image with {self.model}: {image.name}")

        payload = self._build_payload(image)
        data = self._call_api(payload)
        text = self._extract_text(data)
        analysis = self._parse_analysis(image.name, text)

        logger.debug(
            f"{image.name}: {analysis.flower_name} / {analysis.geographic_area} "
            f"({analysis.confidence:.0f}%)"
        )
        return analysis

    def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        self.client.close()

    def __enter__(self) -> "GeminiFlowerClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
