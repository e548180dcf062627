"""Azure AI Vision OCR client."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from inklink.constants import (
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_OCR_TIMEOUT,
    OCR_ANALYZE_PATH,
    OCR_API_VERSION,
)
from inklink.exceptions import ConfigurationError, OCRError


def extract_text(payload: dict[str, Any]) -> str:
    """Pull recognized text out of an Image Analysis ``read`` response.

    Prefers ``readResult.blocks[].lines[].words[]`` joined by spaces, then
    ``readResult.content``, then ``readResult.lines[].text`` joined by
    newlines. Unknown shapes yield an empty string.

    Examples:
        >>> extract_text({"readResult": {"content": " hello "}})
        'hello'
        >>> extract_text({})
        ''
    """
    read_result = payload.get("readResult")
    if not isinstance(read_result, dict):
        return ""

    blocks = read_result.get("blocks")
    if isinstance(blocks, list):
        words = [
            str(word.get("text", ""))
            for block in blocks
            for line in (block.get("lines") or [])
            for word in (line.get("words") or [])
        ]
        text = " ".join(words).strip()
        if text:
            return text

    content = read_result.get("content")
    if content:
        return str(content).strip()

    lines = read_result.get("lines")
    if isinstance(lines, list):
        return "\n".join(str(line.get("text") or "") for line in lines).strip()

    return ""


class AzureOCRClient:
    """Send image bytes to Azure Image Analysis and return the read text."""

    def __init__(
        self,
        endpoint: str | None,
        api_key: str | None,
        language: str = DEFAULT_OCR_LANGUAGE,
        timeout: float = DEFAULT_OCR_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint or not api_key:
            raise ConfigurationError("Azure OCR endpoint or key not set.")
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.language = language
        self.timeout = timeout
        self._client = client

    @property
    def url(self) -> str:
        return f"{self.endpoint}{OCR_ANALYZE_PATH}"

    def _params(self) -> dict[str, str]:
        return {
            "features": "read",
            "model-version": "latest",
            "language": self.language,
            "gender-neutral-caption": "false",
            "api-version": OCR_API_VERSION,
        }

    async def read_text(self, image: bytes) -> str:
        """Run OCR on one image.

        Args:
            image: Raw image bytes (JPEG, PNG, ...)

        Returns:
            Recognized text, empty when nothing was read

        Raises:
            OCRError: On transport errors or a non-2xx response
        """
        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/octet-stream",
        }
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, params=self._params(), headers=headers, content=image
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        self.url, params=self._params(), headers=headers, content=image
                    )
        except httpx.HTTPError as e:
            raise OCRError(f"Azure OCR request failed: {e}") from e

        if not response.is_success:
            raise OCRError(
                f"Azure OCR failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise OCRError(f"Azure OCR returned invalid JSON: {e}") from e

        text = extract_text(payload if isinstance(payload, dict) else {})
        logger.debug(f"OCR read {len(text)} chars from {len(image)} bytes")
        return text
