"""
FloraBatch Tests - CLI
"""

import io
from unittest.mock import patch

from click.testing import CliRunner
from PIL import Image

from florabatch.cli import cli
from florabatch.models import FlowerAnalysis


def write_png(path):
    buffer = io.BytesIO()
    Image.new("RGB", (10, 10)).save(buffer, format="PNG")
    path.write_bytes(buffer.getvalue())


def fake_analyze(self, image):
    if image.name == "bad.png":
        raise RuntimeError("service unavailable")
    return FlowerAnalysis(file_name=image.name, flower_name="Daisy", geographic_area="Europe", confidence=80)


class TestAnalyzeCommand:
    @patch("florabatch.cli.settings")
    @patch("florabatch.analysis_client.GeminiFlowerClient.analyze", fake_analyze)
    def test_analyze_writes_report(self, mock_settings, tmp_path):
        mock_settings.gemini_api_key = "key"
        mock_settings.gemini_model = "gemini-test"
        mock_settings.gemini_base_url = "https://example.test/v1beta"
        mock_settings.request_timeout_seconds = 5.0
        mock_settings.preview_max_size = 64
        mock_settings.log_level = "WARNING"

        images = tmp_path / "images"
        images.mkdir()
        write_png(images / "good.png")
        write_png(images / "bad.png")
        (images / "notes.txt").write_text("skip me")
        out = tmp_path / "out"

        result = CliRunner().invoke(cli, ["analyze", str(images), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert "notes.txt" in result.output
        assert "1 identified, 1 failed" in result.output

        reports = list(out.glob("Flower_Analysis_Results_*.csv"))
        assert len(reports) == 1
        assert len(reports[0].read_text(encoding="utf-8").split("\n")) == 2

    @patch("florabatch.cli.settings")
    def test_no_valid_images(self, mock_settings, tmp_path):
        mock_settings.gemini_api_key = "key"
        mock_settings.log_level = "WARNING"
        (tmp_path / "notes.txt").write_text("hi")

        result = CliRunner().invoke(cli, ["analyze", str(tmp_path)])

        assert result.exit_code == 0
        assert "No valid image files" in result.output

    @patch("florabatch.cli.settings")
    def test_missing_api_key(self, mock_settings, tmp_path):
        mock_settings.gemini_api_key = ""
        mock_settings.log_level = "WARNING"

        result = CliRunner().invoke(cli, ["analyze", str(tmp_path)])

        assert result.exit_code == 1
        assert "GEMINI_API_KEY" in result.output
