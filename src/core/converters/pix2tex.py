"""
Local pix2tex backend.

Runs the pix2tex LaTeX-OCR model in a separate Python interpreter so the
application itself does not need torch installed. The interpreter is located
once at construction time.
"""

from __future__ import annotations

import contextlib
import logging
import os
import subprocess
import tempfile
from collections.abc import Sequence

from PIL import Image

from ..errors import BackendError, ConverterError, ErrorKind
from .base import clean_formula, encode_png

logger = logging.getLogger(__name__)

# Probed in order; the first existing interpreter wins
DEFAULT_PYTHON_PATHS: tuple[str, ...] = (
    "/opt/homebrew/bin/python3",
    "/usr/local/bin/python3",
    "/usr/bin/python3",
)

# Modules whose absence means pix2tex is not installed for that interpreter
REQUIRED_MODULES = ("pix2tex", "PIL")

RECOGNITION_SCRIPT = """\
import sys
sys.stdout.reconfigure(encoding="utf-8")
from PIL import Image
from pix2tex.cli import LatexOCR
model = LatexOCR()
print(model(Image.open(sys.argv[1])))
"""

INSTALL_COMMAND = "pip3 install pix2tex pillow"


def find_python(candidates: Sequence[str]) -> str | None:
    """Return the first candidate that is an executable file."""
    for path in candidates:
        if path and os.path.isfile(path) and os.access(path, os.X_OK):
            return path
    return None


class Pix2TexConverter:
    """
    Converter that shells out to pix2tex.

    Usage:
        converter = Pix2TexConverter()
        latex = converter.convert(image)
    """

    def __init__(
        self,
        python_path: str | None = None,
        *,
        search_paths: Sequence[str] = DEFAULT_PYTHON_PATHS,
        timeout: float = 120.0,
    ) -> None:
        """
        Initialize the converter.

        Args:
            python_path: Interpreter to try before the standard locations
            search_paths: Standard interpreter locations, probed in order
            timeout: Seconds to wait for the recognition process (model load included)
        """
        candidates = [python_path] if python_path else []
        candidates.extend(search_paths)
        self.python_path = find_python(candidates)
        self.timeout = timeout

        if self.python_path:
            logger.debug(f"Using Python interpreter at {self.python_path}")
        else:
            logger.warning("No Python interpreter found for pix2tex")

    def convert(self, image: Image.Image) -> str:
        python_path = self.python_path
        if python_path is None:
            raise ConverterError(ErrorKind.RUNTIME_MISSING)

        png_data = encode_png(image)

        # Private temp file; removed whatever happens below
        try:
            fd, image_path = tempfile.mkstemp(prefix="latex_ocr_", suffix=".png")
        except OSError as e:
            raise ConverterError(ErrorKind.IMAGE_ENCODING_FAILED, technical_message=str(e)) from e

        try:
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(png_data)
            except OSError as e:
                logger.error(f"Failed to write temp image: {e}")
                raise ConverterError(ErrorKind.IMAGE_ENCODING_FAILED, technical_message=str(e)) from e

            return self._run_recognition(python_path, image_path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.remove(image_path)

    def _run_recognition(self, python_path: str, image_path: str) -> str:
        logger.info(f"Running pix2tex on {image_path}")

        try:
            result = subprocess.run(
                [python_path, "-c", RECOGNITION_SCRIPT, image_path],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"pix2tex timed out after {self.timeout:.0f} seconds")
            raise ConverterError(
                ErrorKind.TIMEOUT,
                user_message=f"pix2tex did not finish within {self.timeout:.0f} seconds.",
                technical_message=str(e),
            ) from e
        except OSError as e:
            logger.error(f"Failed to run Python: {e}")
            raise BackendError(-1, f"Python execution failed: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            logger.error(f"pix2tex exited with status {result.returncode}: {stderr.strip()}")

            if "No module named" in stderr and any(module in stderr for module in REQUIRED_MODULES):
                raise ConverterError(ErrorKind.DEPENDENCY_MISSING, technical_message=stderr.strip())

            raise BackendError(
                result.returncode,
                _last_line(stderr) or "Conversion failed",
                technical_message=stderr.strip() or None,
            )

        formula = clean_formula(result.stdout)
        logger.debug(f"pix2tex result: {formula}")
        return formula


def _last_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""
