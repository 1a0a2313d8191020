"""
Image normalization ahead of local OCR.
"""

import io

from loguru import logger
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import PreprocessingError
from .models import RawImage

DEFAULT_MAX_SIDE = 1600

# Linear contrast around mid-grey, then push near-white background to white
CONTRAST_FACTOR = 1.4
CONTRAST_PIVOT = 128
BRIGHTEN_THRESHOLD = 190
BRIGHTEN_OFFSET = 35


def _build_lut():
    lut = []
    for v in range(256):
        out = (v - CONTRAST_PIVOT) * CONTRAST_FACTOR + CONTRAST_PIVOT
        if out > BRIGHTEN_THRESHOLD:
            out += BRIGHTEN_OFFSET
        lut.append(int(max(0, min(255, round(out)))))
    return lut


_LUT = _build_lut()


def scale_size(width: int, height: int, max_side: int = DEFAULT_MAX_SIDE):
    """Target size with the longer side capped at max_side; never upscales."""
    longest = max(width, height)
    if longest <= max_side:
        return width, height
    scale = max_side / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def _preprocess(image: RawImage, max_side: int) -> RawImage:
    try:
        img = Image.open(io.BytesIO(image.data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise PreprocessingError(f"Could not decode image: {e}") from e

    try:
        # Honour camera orientation before measuring
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        size = scale_size(img.width, img.height, max_side)
        if size != img.size:
            img = img.resize(size, Image.Resampling.LANCZOS)

        # ITU-R 601-2 luma
        gray = img.convert("L").point(_LUT)

        out = io.BytesIO()
        gray.save(out, format="PNG")
    except Exception as e:
        raise PreprocessingError(f"Could not normalize image: {e}") from e
    return RawImage(data=out.getvalue(), media_type="image/png")


def preprocess_image(image: RawImage, max_side: int = DEFAULT_MAX_SIDE) -> RawImage:
    """
    Downscale, grayscale and contrast-adjust an image for OCR.

    If the image cannot be decoded the original is returned unchanged.
    """
    try:
        return _preprocess(image, max_side)
    except PreprocessingError as e:
        logger.warning(f"Preprocessing skipped, using original image: {e}")
        return image
