"""
SimpleTex remote OCR backend (multipart upload).
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from PIL import Image

from ..errors import BackendError, ConverterError, ErrorKind
from .base import PNG_MEDIA_TYPE, clean_formula, encode_png

logger = logging.getLogger(__name__)

API_ENDPOINT = "https://server.simpletex.cn/api/latex_ocr_turbo"
TIMEOUT_SECONDS = 15.0


class SimpleTexConverter:
    """Uploads the image to SimpleTex and reads the LaTeX back from the JSON reply."""

    def __init__(
        self,
        token: str | None,
        *,
        endpoint: str = API_ENDPOINT,
        timeout: float = TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self.endpoint = endpoint
        self.timeout = timeout
        self._http = session or requests

    def convert(self, image: Image.Image) -> str:
        if not self._token or not self._token.strip():
            logger.warning("No SimpleTex token configured")
            raise ConverterError(
                ErrorKind.CREDENTIALS_MISSING,
                user_message="No SimpleTex token configured. Please set your token in Settings.",
            )

        png_data = encode_png(image)
        logger.info("Sending request to SimpleTex API")

        # requests builds the multipart body and its boundary
        files = {"file": ("image.png", png_data, PNG_MEDIA_TYPE)}
        headers = {"token": self._token.strip()}

        try:
            response = self._http.post(self.endpoint, files=files, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error("SimpleTex request timed out")
            raise ConverterError(ErrorKind.TIMEOUT, technical_message=str(e)) from e
        except requests.RequestException as e:
            logger.error(f"SimpleTex network error: {e}")
            raise ConverterError(
                ErrorKind.TRANSPORT_ERROR,
                user_message=f"Network error: {e}",
                technical_message=repr(e),
            ) from e

        logger.debug(f"SimpleTex response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"SimpleTex API error: {response.text}")
            raise BackendError(response.status_code, response.text or "Unknown error")

        return self._parse_response(response)

    def _parse_response(self, response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError as e:
            raise ConverterError(
                ErrorKind.RESPONSE_UNPARSEABLE,
                user_message="Failed to parse SimpleTex response: invalid JSON",
                technical_message=response.text[:500],
            ) from e

        latex = extract_latex(payload)
        if latex is None:
            logger.error(f"Unexpected SimpleTex response: {response.text[:500]}")
            raise ConverterError(
                ErrorKind.RESPONSE_UNPARSEABLE,
                user_message="Failed to parse SimpleTex response: could not extract LaTeX",
                technical_message=response.text[:500],
            )

        formula = clean_formula(latex)
        logger.debug(f"SimpleTex result: {formula}")
        return formula


def extract_latex(payload: Any) -> str | None:
    """Find the formula at ``res.latex``, falling back to top-level ``latex``."""
    if not isinstance(payload, dict):
        return None

    res = payload.get("res")
    if isinstance(res, dict) and isinstance(res.get("latex"), str):
        return res["latex"]

    if isinstance(payload.get("latex"), str):
        return payload["latex"]

    return None
