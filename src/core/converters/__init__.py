"""OCR backends: local pix2tex, SimpleTex multipart upload, Claude vision."""

from .claude import ClaudeConverter
from .pix2tex import Pix2TexConverter
from .simpletex import SimpleTexConverter

__all__ = ["ClaudeConverter", "Pix2TexConverter", "SimpleTexConverter"]
