"""Transcribe handwritten note images with a vision LLM via LiteLLM."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import litellm
from loguru import logger

from inklink.config import EnvVarNotFoundError, LLMConfig, resolve_env_value
from inklink.constants import LLM_DATA_URL_PATTERN
from inklink.exceptions import ConfigurationError, TranscriptionError

_USABLE_DATA_URL = re.compile(LLM_DATA_URL_PATTERN, re.IGNORECASE)

SYSTEM_PROMPT = "\n".join(
    [
        "You are an assistant transcribing handwritten notes from images.",
        "Goals:",
        "- Produce clean, readable markdown.",
        "- Preserve paragraphs, lists, quotes, headings if apparent.",
        "- Use the provided OCR text as primary input; consult images to correct OCR mistakes.",
        "- Keep the author's original wording and style; do not add meta commentary.",
        "- If uncertain about a word, use your best judgment from context.",
    ]
)


@dataclass
class TranscriptionItem:
    """One image handed to the model, with its OCR text."""

    file_name: str
    alt: str = ""
    ocr_text: str = ""
    data_url: str | None = None

    @property
    def usable(self) -> bool:
        """Whether the data URL is an image type vision models accept."""
        return bool(self.data_url and _USABLE_DATA_URL.match(self.data_url))


def build_descriptor(items: list[TranscriptionItem]) -> str:
    """Build the text part of the user message describing every image."""
    lines = [
        "Transcribe the following images. For each image we provide a name, "
        "optional alt text, and OCR text.",
        "",
    ]
    for index, item in enumerate(items, start=1):
        alt = f" ({item.alt})" if item.alt else ""
        lines.append(f"Image {index}: {item.file_name}{alt}")
        lines.append("")
        if item.ocr_text.strip():
            lines.extend(["OCR text:", "```", item.ocr_text.strip(), "```"])
        else:
            lines.append("(No OCR text available for this image.)")
        lines.append("")
    lines.append("")
    lines.append(
        "Please output only the transcription in markdown. There's no need to wrap "
        "it in triple backticks as it will be added directly to a markdown note."
    )
    return "\n".join(lines)


def build_system_prompt(personal_context: str = "") -> str:
    """System prompt, with the user's personal context appended when set."""
    context = personal_context.strip()
    if not context:
        return SYSTEM_PROMPT
    return (
        f"{SYSTEM_PROMPT}\n\n"
        "Personal context (names, places and jargon that may appear in the notes):\n"
        f"{context}"
    )


class Transcriber:
    """Turn images plus OCR text into a markdown transcription."""

    def __init__(self, config: LLMConfig) -> None:
        self.config = config

    def resolve_api_key(self) -> str | None:
        if not self.config.api_key:
            return None
        try:
            return resolve_env_value(self.config.api_key, strict=True)
        except EnvVarNotFoundError as e:
            raise ConfigurationError(f"LLM API key not set: {e}") from e

    def build_messages(
        self, items: list[TranscriptionItem], personal_context: str | None = None
    ) -> list[dict[str, Any]]:
        if personal_context is None:
            personal_context = self.config.personal_context
        usable = [item for item in items if item.usable]
        if not usable:
            raise TranscriptionError("No images available to send to the model.")

        content: list[dict[str, Any]] = [{"type": "text", "text": build_descriptor(items)}]
        content.extend(
            {"type": "image_url", "image_url": {"url": item.data_url}} for item in usable
        )
        return [
            {"role": "system", "content": build_system_prompt(personal_context)},
            {"role": "user", "content": content},
        ]

    async def transcribe(
        self, items: list[TranscriptionItem], personal_context: str | None = None
    ) -> str:
        """Send one request covering every image and return the markdown.

        ``personal_context`` overrides the configured context for this call.

        Raises:
            TranscriptionError: If no image is usable or the request fails
            ConfigurationError: If the API key cannot be resolved
        """
        messages = self.build_messages(items, personal_context)
        logger.debug(
            f"Transcribing {len(items)} image(s) with {self.config.model} "
            f"({sum(item.usable for item in items)} sent as images)"
        )

        api_key = self.resolve_api_key()
        try:
            response = await litellm.acompletion(
                model=self.config.model,
                messages=messages,
                max_tokens=self.config.max_tokens,
                api_key=api_key,
                api_base=self.config.api_base,
                timeout=self.config.timeout,
            )
        except Exception as e:
            raise TranscriptionError(f"LLM request failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None) or ""
        return str(content).strip()
