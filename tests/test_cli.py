"""
Tests for the command-line entrypoint.
"""
import pytest

from receipt_extraction_pipeline.cli import main as cli
from receipt_extraction_pipeline.core.models import ExtractionOutcome, ReceiptRecord


class FakeProcessor:
    def __init__(self, config):
        self.config = config.with_defaults()
        self.calls = []

    def process_image(self, image_bytes, link="", memo="", sink=None, hints=None, timeout=None):
        self.calls.append((image_bytes, link, memo, hints))
        if image_bytes.startswith(b"\x89PNG"):
            return ExtractionOutcome(success=True, data=ReceiptRecord(store_name="Acme", total_amount=4.0))
        return ExtractionOutcome.failure("image_format: unsupported image format")


@pytest.fixture()
def fake_processor(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setattr(cli, "ReceiptProcessor", FakeProcessor)


class TestMain:
    def test_missing_api_key(self, monkeypatch, tmp_path, capsys):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert cli.main([str(tmp_path / "r.png")]) == 1
        assert "API key is required" in capsys.readouterr().out

    def test_success(self, fake_processor, tmp_path, capsys):
        image = tmp_path / "r.png"
        image.write_bytes(b"\x89PNG" + b"\x00" * 32)
        assert cli.main([str(image), "--currency", "EUR"]) == 0
        out = capsys.readouterr().out
        assert "[OK] Acme" in out
        assert "[WARN] currency is required" in out

    def test_failure_sets_exit_code(self, fake_processor, tmp_path, capsys):
        good = tmp_path / "good.png"
        good.write_bytes(b"\x89PNG" + b"\x00" * 32)
        bad = tmp_path / "bad.bmp"
        bad.write_bytes(b"BM" + b"\x00" * 32)
        assert cli.main([str(good), str(bad), str(tmp_path / "missing.png")]) == 1
        out = capsys.readouterr().out
        assert "[ERROR] Failed bad.bmp: image_format" in out
        assert "[ERROR] Failed missing.png" in out
