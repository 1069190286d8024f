"""
Claude vision backend.

Sends the image as base64 inside a Messages API request and asks the model
to answer with LaTeX only.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests
from PIL import Image

from ..errors import BackendError, ConverterError, ErrorKind
from .base import PNG_MEDIA_TYPE, clean_formula, encode_png

logger = logging.getLogger(__name__)

API_ENDPOINT = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 1024
TIMEOUT_SECONDS = 10.0

PROMPT = (
    "Convert this mathematical formula image to LaTeX code. "
    "Return ONLY the LaTeX code without any explanation, markdown formatting, or additional text. "
    "If there are multiple formulas, separate them with newlines."
)


def build_request_body(base64_image: str) -> dict[str, Any]:
    """Build the Messages API payload for one image."""
    return {
        "model": MODEL,
        "max_tokens": MAX_TOKENS,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": PNG_MEDIA_TYPE,
                            "data": base64_image,
                        },
                    },
                    {"type": "text", "text": PROMPT},
                ],
            }
        ],
    }


class ClaudeConverter:
    """Converter backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        endpoint: str = API_ENDPOINT,
        timeout: float = TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._http = session or requests

    def convert(self, image: Image.Image) -> str:
        if not self._api_key or not self._api_key.strip():
            logger.warning("No Claude API key configured")
            raise ConverterError(ErrorKind.CREDENTIALS_MISSING)

        encoded = base64.b64encode(encode_png(image)).decode("ascii")
        headers = {
            "content-type": "application/json",
            "anthropic-version": API_VERSION,
            "x-api-key": self._api_key.strip(),
        }

        logger.info("Sending request to Claude API")
        try:
            response = self._http.post(
                self.endpoint,
                json=build_request_body(encoded),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error("Claude request timed out")
            raise ConverterError(ErrorKind.TIMEOUT, technical_message=str(e)) from e
        except requests.RequestException as e:
            logger.error(f"Claude network error: {e}")
            raise ConverterError(
                ErrorKind.TRANSPORT_ERROR,
                user_message=f"Network error: {e}",
                technical_message=repr(e),
            ) from e

        status = response.status_code
        logger.debug(f"Claude response status: {status}")

        if status == 200:
            return self._extract_latex(response)
        if status == 401:
            logger.error("Claude rejected the API key")
            raise ConverterError(ErrorKind.INVALID_CREDENTIALS)
        if status == 429:
            logger.warning("Claude rate limit exceeded")
            raise ConverterError(ErrorKind.RATE_LIMITED)

        message = extract_error_message(response)
        logger.error(f"Claude API error ({status}): {message}")
        raise BackendError(status, message)

    def _extract_latex(self, response: requests.Response) -> str:
        try:
            payload = response.json()
            text = payload["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Failed to parse Claude response: {response.text[:500]}")
            raise ConverterError(
                ErrorKind.RESPONSE_UNPARSEABLE,
                user_message="Failed to parse API response: could not extract text",
                technical_message=response.text[:500],
            ) from e

        if not isinstance(text, str):
            raise ConverterError(ErrorKind.RESPONSE_UNPARSEABLE, technical_message=repr(text)[:500])

        formula = clean_formula(text)
        logger.debug(f"Claude result: {formula}")
        return formula


def extract_error_message(response: requests.Response) -> str:
    """Best-effort ``error.message`` from an API error body, else the raw text."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]

    return response.text or "Unknown error"
