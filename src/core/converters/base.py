"""
Helpers shared by all OCR backends.
"""

from __future__ import annotations

import io
import logging

from PIL import Image

from ..errors import ConverterError, ErrorKind

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"


def encode_png(image: Image.Image) -> bytes:
    """
    Serialize an image to PNG bytes.

    Raises:
        ConverterError: IMAGE_ENCODING_FAILED if Pillow cannot write the image
    """
    if image.width <= 0 or image.height <= 0:
        raise ConverterError(ErrorKind.IMAGE_ENCODING_FAILED, technical_message="Image has no pixels")

    # PNG cannot store CMYK or palette+alpha variants everywhere; normalize first
    if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
        image = image.convert("RGBA")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to encode image as PNG: {e}")
        raise ConverterError(ErrorKind.IMAGE_ENCODING_FAILED, technical_message=str(e)) from e
    return buffer.getvalue()


def clean_formula(text: str | None) -> str:
    """
    Trim recognizer output.

    Raises:
        ConverterError: NO_FORMULA_DETECTED if nothing but whitespace is left
    """
    formula = (text or "").strip()
    if not formula:
        raise ConverterError(ErrorKind.NO_FORMULA_DETECTED)
    return formula
