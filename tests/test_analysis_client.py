"""
Unit tests for the Gemini flower analysis client.
HTTP traffic is served by httpx.MockTransport.
"""

import base64
import json
from unittest.mock import MagicMock

import httpx
import pytest

from florabatch.analysis_client import AnalysisError, GeminiFlowerClient
from florabatch.models import SourceImage


def gemini_response(payload) -> dict:
    """Wrap a model answer the way generateContent returns it."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(handler) -> GeminiFlowerClient:
    return GeminiFlowerClient(
        api_key="test-key",
        model="gemini-test",
        base_url="https://example.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


IMAGE = SourceImage(name="rose.jpg", mime_type="image/jpeg", content=b"\xff\xd8jpeg-bytes")


class TestRequest:
    def test_request_shape(self):
        """Should send one generateContent call with image, prompt and schema."""
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=gemini_response(
                {"flowerName": "Rose", "geographicArea": "Asia", "confidence": 92}
            ))

        make_client(handler).analyze(IMAGE)

        assert len(captured) == 1
        request = captured[0]
        assert request.url.path == "/v1beta/models/gemini-test:generateContent"
        assert request.headers["x-goog-api-key"] == "test-key"

        body = json.loads(request.content)
        parts = body["contents"][0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/jpeg"
        assert base64.b64decode(parts[0]["inline_data"]["data"]) == b"\xff\xd8jpeg-bytes"
        assert parts[1]["text"] == GeminiFlowerClient.PROMPT

        config = body["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["required"] == ["flowerName", "geographicArea", "confidence"]

    def test_from_settings(self):
        settings = MagicMock()
        settings.gemini_api_key = "abc"
        settings.gemini_model = "gemini-2.5-flash"
        settings.gemini_base_url = "https://example.test/v1beta/"
        settings.request_timeout_seconds = 5.0

        client = GeminiFlowerClient.from_settings(settings, model="other-model")

        assert client.model == "other-model"
        assert client.base_url == "https://example.test/v1beta"
        assert client.client.timeout == httpx.Timeout(5.0)
        client.close()


    def test_timeout_reaches_http_client(self):
        client = GeminiFlowerClient(api_key="k", timeout=7.5)
        assert client.client.timeout == httpx.Timeout(7.5)
        client.close()


class TestParsing:
    def test_full_response(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response(
            {"flowerName": "Rose", "geographicArea": "Asia", "confidence": 92}
        )))
        result = client.analyze(IMAGE)

        assert result.file_name == "rose.jpg"
        assert result.flower_name == "Rose"
        assert result.geographic_area == "Asia"
        assert result.confidence == 92
        assert result.timestamp.tzinfo is not None

    def test_missing_fields_default(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response({})))
        result = client.analyze(IMAGE)

        assert result.flower_name == "Unknown"
        assert result.geographic_area == "Unknown"
        assert result.confidence == 0

    def test_blank_and_invalid_fields_default(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response(
            {"flowerName": "  ", "geographicArea": 12, "confidence": "very sure"}
        )))
        result = client.analyze(IMAGE)

        assert result.flower_name == "Unknown"
        assert result.geographic_area == "Unknown"
        assert result.confidence == 0

    @pytest.mark.parametrize("raw,expected", [(150, 100), (-5, 0), ("87.5", 87.5)])
    def test_confidence_clamped(self, raw, expected):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response(
            {"flowerName": "Tulip", "geographicArea": "Europe", "confidence": raw}
        )))
        assert client.analyze(IMAGE).confidence == expected


class TestFailures:
    def test_no_candidates(self):
        client = make_client(lambda r: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(AnalysisError, match="No response text"):
            client.analyze(IMAGE)

    def test_empty_text(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response("")))
        with pytest.raises(AnalysisError, match="No response text"):
            client.analyze(IMAGE)

    def test_invalid_json(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response("not json")))
        with pytest.raises(AnalysisError, match="invalid JSON"):
            client.analyze(IMAGE)

    def test_non_object_json(self):
        client = make_client(lambda r: httpx.Response(200, json=gemini_response("[1, 2]")))
        with pytest.raises(AnalysisError):
            client.analyze(IMAGE)

    def test_http_error_includes_api_message(self):
        client = make_client(lambda r: httpx.Response(
            400, json={"error": {"message": "API key not valid"}}
        ))
        with pytest.raises(AnalysisError, match="API key not valid"):
            client.analyze(IMAGE)

    def test_transport_error_propagates(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(httpx.ConnectError):
            client.analyze(IMAGE)
