"""
Shared fixtures for the receipt extraction tests.

Images are synthesised in memory with Pillow; the OCR engine and remote
providers are replaced per test.
"""

import io

import pytest
from PIL import Image

from receipt_extract.core.models import RawImage


def make_image_bytes(width=40, height=20, color=(230, 230, 230), fmt="PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_bytes():
    """Factory for in-memory encoded test images."""
    return make_image_bytes


@pytest.fixture
def receipt_image():
    return RawImage(data=make_image_bytes(), media_type="image/png")


@pytest.fixture
def fake_ocr(monkeypatch):
    """
    Replace the local OCR call used by the orchestrator.

    Call the fixture with a dict of psm -> text (or exception); the returned
    function records the psm of every call in .calls and the image in .images.
    """
    import receipt_extract.core.processor as processor

    def install(outputs):
        calls = []
        images = []

        def recognize(image, psm, language, dpi):
            calls.append(psm)
            images.append(image)
            out = outputs.get(psm, "")
            if isinstance(out, Exception):
                raise out
            return out

        recognize.calls = calls
        recognize.images = images
        monkeypatch.setattr(processor, "recognize_text", recognize)
        return recognize

    return install


@pytest.fixture
def fake_remote(monkeypatch):
    """Replace the remote tier call used by the orchestrator."""
    import receipt_extract.core.processor as processor

    def install(result=None, error=None):
        calls = []

        async def extract_with_llm(image, **kwargs):
            calls.append(kwargs)
            if error is not None:
                raise error
            return result

        extract_with_llm.calls = calls
        monkeypatch.setattr(processor, "extract_with_llm", extract_with_llm)
        return extract_with_llm

    return install
