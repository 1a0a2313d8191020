"""
Tests for the data models, configuration and small helpers.
"""

import base64
from decimal import Decimal

import pytest

from receipt_extract.core.config import PipelineConfig
from receipt_extract.core.models import ParsedInvoice, RawImage
from receipt_extract.core.utils import find_json_object, parse_data_uri, sniff_media_type


class TestParsedInvoice:

    def test_to_dict_key_order_and_types(self):
        invoice = ParsedInvoice(merchant="Cafe", total=Decimal("9.50"), date="2024-01-05",
                                category="Coffee", raw_text="CAFE")
        d = invoice.to_dict()
        assert list(d) == ["merchant", "total", "date", "category", "rawText"]
        assert d["total"] == 9.5
        assert isinstance(d["total"], float)

    def test_has_fields(self):
        assert not ParsedInvoice(raw_text="text").has_fields()
        assert ParsedInvoice(category="Food").has_fields()
        assert not ParsedInvoice(category="Food").has_fields(include_category=False)
        assert ParsedInvoice(total=Decimal("0.01")).has_fields(include_category=False)


class TestRawImage:

    def test_from_path_uses_suffix(self, tmp_path, image_bytes):
        path = tmp_path / "r.webp"
        path.write_bytes(image_bytes())
        assert RawImage.from_path(path).media_type == "image/webp"

    def test_unknown_suffix_sniffs_bytes(self, tmp_path, image_bytes):
        path = tmp_path / "upload.bin"
        path.write_bytes(image_bytes())
        assert RawImage.from_path(path).media_type == "image/png"

    def test_data_uri_round_trip(self, receipt_image):
        uri = receipt_image.to_data_uri()
        assert RawImage.coerce(uri) == receipt_image

    def test_bad_data_uri(self):
        with pytest.raises(ValueError):
            RawImage.coerce("data:text/plain,hello")

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            RawImage.coerce(3.14)


def test_parse_data_uri_defaults_media_type():
    payload = base64.b64encode(b"abc").decode()
    assert parse_data_uri(f"data:;base64,{payload}") == (b"abc", "image/jpeg")


@pytest.mark.parametrize("data, expected", [
    (b"\x89PNG\r\n\x1a\n....", "image/png"),
    (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
    (b"\xff\xd8\xff\xe0", "image/jpeg"),
])
def test_sniff_media_type(data, expected):
    assert sniff_media_type(data) == expected


@pytest.mark.parametrize("text, expected", [
    ('x {"a": 1} y {"b": 2}', '{"a": 1}'),
    ('{"a": {"b": "}"}}', '{"a": {"b": "}"}}'),
    ('{"a": "\\"}"}', '{"a": "\\"}"}'),
    ("no object", None),
    ('{"open": 1', None),
])
def test_find_json_object(text, expected):
    assert find_json_object(text) == expected


class TestPipelineConfig:

    def test_defaults(self, monkeypatch):
        for name in ("RECEIPT_USE_LLM", "LLM_PROVIDER", "LLM_MODEL", "RECEIPT_REMOTE_TIMEOUT",
                     "OCR_LANGUAGE", "OCR_PRIMARY_PSM", "OCR_ALTERNATE_PSM", "TESSERACT_CMD"):
            monkeypatch.delenv(name, raising=False)
        config = PipelineConfig.from_env()
        assert config.use_llm
        assert config.llm_provider == "openai"
        assert config.llm_model is None
        assert config.remote_timeout == 30.0
        assert (config.primary_psm, config.alternate_psm) == (6, 4)
        assert config.ocr_language == "eng"
        assert config.tesseract_cmd is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RECEIPT_USE_LLM", "false")
        monkeypatch.setenv("LLM_PROVIDER", "endpoint")
        monkeypatch.setenv("RECEIPT_EXTRACT_URL", "https://extract.example.com")
        monkeypatch.setenv("RECEIPT_REMOTE_TIMEOUT", "12.5")
        monkeypatch.setenv("OCR_PRIMARY_PSM", "11")
        monkeypatch.setenv("OCR_LANGUAGE", "eng+fra")
        config = PipelineConfig.from_env()
        assert not config.use_llm
        assert config.llm_provider == "endpoint"
        assert config.endpoint_url == "https://extract.example.com"
        assert config.remote_timeout == 12.5
        assert config.primary_psm == 11
        assert config.ocr_language == "eng+fra"

    def test_invalid_numbers_keep_defaults(self, monkeypatch):
        monkeypatch.setenv("RECEIPT_REMOTE_TIMEOUT", "soon")
        monkeypatch.setenv("OCR_DPI", "high")
        config = PipelineConfig.from_env()
        assert config.remote_timeout == 30.0
        assert config.ocr_dpi == 300
