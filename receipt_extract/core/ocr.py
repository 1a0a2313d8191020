"""
Local OCR with Tesseract.
"""

import io
from typing import Optional

from loguru import logger

from .errors import LocalEngineError
from .models import RawImage

# Page segmentation modes (tesseract --psm)
PSM_SINGLE_COLUMN = 4
PSM_UNIFORM_BLOCK = 6
PSM_SPARSE_TEXT = 11

DEFAULT_LANGUAGE = "eng"
DEFAULT_DPI = 300


def _lazy_import_ocr_deps():
    """Lazy import heavy OCR dependencies."""
    global pytesseract, PIL_Image
    import importlib
    pytesseract = importlib.import_module("pytesseract")
    PIL_Image = importlib.import_module("PIL.Image")


# Initialize on first use
pytesseract = None
PIL_Image = None


def tesseract_config(psm: int, dpi: int = DEFAULT_DPI) -> str:
    """Command-line config passed through to tesseract."""
    return f"--psm {psm} --dpi {dpi} -c preserve_interword_spaces=1"


def set_tesseract_cmd(tesseract_cmd: Optional[str]):
    """
    Point pytesseract at a specific tesseract binary.

    pytesseract keeps the command as a module global, so this is process-wide;
    call it once at startup rather than per image.
    """
    if not tesseract_cmd:
        return
    if pytesseract is None or PIL_Image is None:
        try:
            _lazy_import_ocr_deps()
        except ImportError as e:
            logger.warning(f"OCR dependencies not installed, ignoring TESSERACT_CMD: {e}")
            return
    pytesseract.pytesseract.tesseract_cmd = tesseract_cmd


def recognize_text(image: RawImage, psm: int = PSM_UNIFORM_BLOCK,
                   language: str = DEFAULT_LANGUAGE, dpi: int = DEFAULT_DPI) -> str:
    """
    OCR an encoded image to text.

    Any failure, from decoding to the tesseract binary itself, is raised as
    LocalEngineError.
    """
    if pytesseract is None or PIL_Image is None:
        try:
            _lazy_import_ocr_deps()
        except ImportError as e:
            raise LocalEngineError(f"OCR dependencies not installed: {e}") from e

    try:
        img = PIL_Image.open(io.BytesIO(image.data))
        return pytesseract.image_to_string(img, lang=language, config=tesseract_config(psm, dpi))
    except Exception as e:
        raise LocalEngineError(f"Tesseract failed (psm {psm}): {e}") from e
