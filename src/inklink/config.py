"""Configuration management for inklink."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from inklink.constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    DEFAULT_IMAGE_LIMIT,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_LLM_API_KEY,
    DEFAULT_LLM_IMAGE_QUALITY,
    DEFAULT_LLM_MAX_EDGE,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_OCR_API_KEY,
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_OCR_TIMEOUT,
    DEFAULT_TRANSCRIPTION_HEADING,
    MAX_PERSONAL_CONTEXT_CHARS,
)


class EnvVarNotFoundError(ValueError):
    """Raised when an environment variable referenced by env: syntax is not found."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: str, strict: bool = True) -> str | None:
    """Resolve env:VAR_NAME syntax to actual environment variable value.

    Args:
        value: The value to resolve. If starts with "env:", looks up environment variable.
        strict: If True, raises EnvVarNotFoundError when variable not found.
                If False, returns None when variable not found.

    Returns:
        The resolved value, or None if env var not found and strict=False.

    Raises:
        EnvVarNotFoundError: If strict=True and environment variable not found.
    """
    if isinstance(value, str) and value.startswith("env:"):
        env_var = value[4:]
        env_value = os.environ.get(env_var)
        if env_value is None:
            if strict:
                raise EnvVarNotFoundError(env_var)
            return None
        return env_value
    return value


class OCRConfig(BaseModel):
    """Azure AI Vision OCR configuration."""

    endpoint: str | None = None  # e.g. https://<resource>.cognitiveservices.azure.com
    api_key: str | None = DEFAULT_OCR_API_KEY
    language: str = DEFAULT_OCR_LANGUAGE
    timeout: float = Field(default=DEFAULT_OCR_TIMEOUT, gt=0)

    def get_resolved_api_key(self, strict: bool = True) -> str | None:
        """Get API key with env: syntax resolved."""
        if self.api_key:
            return resolve_env_value(self.api_key, strict=strict)
        return None


class LLMConfig(BaseModel):
    """Vision LLM configuration (any LiteLLM model string)."""

    model: str = DEFAULT_LLM_MODEL
    api_key: str | None = DEFAULT_LLM_API_KEY
    api_base: str | None = None
    max_tokens: int = Field(default=DEFAULT_LLM_MAX_TOKENS, ge=1)
    timeout: float = Field(default=DEFAULT_LLM_TIMEOUT, gt=0)
    personal_context: str = ""  # Names, places, jargon that help transcription

    @field_validator("personal_context", mode="before")
    @classmethod
    def limit_personal_context(cls, v: str | None) -> str:
        """Truncate personal context to the supported length."""
        if v is None:
            return ""
        if len(v) > MAX_PERSONAL_CONTEXT_CHARS:
            logger.warning(
                f"Personal context is {len(v)} chars; "
                f"truncated to {MAX_PERSONAL_CONTEXT_CHARS}"
            )
            return v[:MAX_PERSONAL_CONTEXT_CHARS]
        return v


class ImageConfig(BaseModel):
    """Image handling configuration."""

    convert_heic: bool = True  # Convert HEIC to JPEG before OCR/LLM
    replace_heic_embeds: bool = True  # Write JPEG copies and relink the note
    downscale_for_llm: bool = False  # OCR always keeps full resolution
    limit: int = Field(default=DEFAULT_IMAGE_LIMIT, ge=1)
    jpeg_quality: int = Field(default=DEFAULT_JPEG_QUALITY, ge=1, le=100)
    llm_max_edge: int = Field(default=DEFAULT_LLM_MAX_EDGE, ge=64)
    llm_quality: int = Field(default=DEFAULT_LLM_IMAGE_QUALITY, ge=1, le=100)


class LinkConfig(BaseModel):
    """Entity linking configuration."""

    auto_link_entities: bool = False


class OutputConfig(BaseModel):
    """Transcription output configuration."""

    heading: str = DEFAULT_TRANSCRIPTION_HEADING


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class InklinkConfig(BaseModel):
    """Main configuration model."""

    ocr: OCRConfig = Field(default_factory=OCRConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    link: LinkConfig = Field(default_factory=LinkConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    log: LogConfig = Field(default_factory=LogConfig)


def _set_nested_value(data: dict[str, Any], key_path: str, value: Any) -> None:
    """Set a nested value in a dict using dot-separated key path.

    Creates intermediate dicts if they don't exist.
    """
    parts = key_path.split(".")
    current = data
    for part in parts[:-1]:
        if part not in current or not isinstance(current[part], dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


class ConfigManager:
    """Configuration manager for loading and saving configs."""

    CONFIG_FILENAME = CONFIG_FILENAME
    DEFAULT_USER_CONFIG_DIR = Path.home() / ".inklink"

    def __init__(self) -> None:
        self._config: InklinkConfig | None = None
        self._config_path: Path | None = None
        self._raw_data: dict[str, Any] = {}  # Preserve original JSON structure
        self._modified_keys: set[str] = set()  # Track modified key paths

    @property
    def config(self) -> InklinkConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def config_path(self) -> Path | None:
        """Get the path of the loaded configuration file."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> InklinkConfig:
        """
        Load configuration from file with fallback chain.

        Priority (highest to lowest):
        1. Explicit config_path parameter
        2. INKLINK_CONFIG environment variable
        3. ./inklink.json (current directory)
        4. ~/.inklink/config.json (user directory)
        5. Default values
        """
        config_data: dict[str, Any] = {}

        resolved_path = self._resolve_config_path(config_path, env_override)

        if resolved_path and resolved_path.exists():
            config_data = self._load_json(resolved_path)
            self._config_path = resolved_path
            logger.debug(f"Loaded config from {resolved_path}")

        self._raw_data = config_data.copy()
        self._modified_keys.clear()

        self._config = InklinkConfig.model_validate(config_data)
        return self._config

    def _resolve_config_path(
        self,
        config_path: Path | str | None,
        env_override: bool,
    ) -> Path | None:
        """Resolve configuration file path based on priority."""
        if config_path:
            return Path(config_path)

        if env_override:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            if env_path:
                return Path(env_path)

        cwd_config = Path.cwd() / self.CONFIG_FILENAME
        if cwd_config.exists():
            return cwd_config

        user_config = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        if user_config.exists():
            return user_config

        return None

    def _load_json(self, path: Path) -> dict[str, Any]:
        """Load JSON configuration file."""
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def _generate_minimal_config(self) -> dict[str, Any]:
        """Generate minimal template config for the init command."""
        return {
            "ocr": {
                "endpoint": "https://<resource>.cognitiveservices.azure.com",
                "api_key": DEFAULT_OCR_API_KEY,
            },
            "llm": {
                "model": DEFAULT_LLM_MODEL,
                "api_key": DEFAULT_LLM_API_KEY,
                "personal_context": "",
            },
            "image": {"replace_heic_embeds": True, "downscale_for_llm": False},
            "link": {"auto_link_entities": False},
        }

    def save(
        self,
        path: Path | str | None = None,
        full_dump: bool = False,
        minimal: bool = False,
    ) -> Path:
        """Save current configuration to file.

        Args:
            path: Optional path to save to. If None, uses loaded config path.
            full_dump: If True, dumps entire config including defaults.
                       If False (default), only updates modified keys in original JSON.
            minimal: If True, generates a minimal template config (for init command).
        """
        if self._config is None:
            self._config = InklinkConfig()

        save_path = Path(path) if path else self._config_path
        if save_path is None:
            save_path = self.DEFAULT_USER_CONFIG_DIR / "config.json"
        elif save_path.is_dir():
            save_path = save_path / self.CONFIG_FILENAME

        save_path.parent.mkdir(parents=True, exist_ok=True)

        if minimal:
            output_data = self._generate_minimal_config()
        elif full_dump:
            output_data = self._config.model_dump(mode="json")
        else:
            # Minimal-diff save: only update modified keys in original JSON
            output_data = self._raw_data.copy()
            for key in self._modified_keys:
                _set_nested_value(output_data, key, self.get(key))

        with open(save_path, "w", encoding="utf-8") as f:
            json.dump(output_data, f, indent=2, ensure_ascii=False)
            f.write("\n")

        self._config_path = save_path
        return save_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Example: config_manager.get("image.limit")
        """
        value: Any = self.config
        for part in key.split("."):
            if isinstance(value, BaseModel):
                value = getattr(value, part, None)
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return default

            if value is None:
                return default

        return value

    def has_key(self, key: str) -> bool:
        """Check whether a dot-separated key names a known setting."""
        value: Any = self.config
        for part in key.split("."):
            if not isinstance(value, BaseModel) or part not in type(value).model_fields:
                return False
            value = getattr(value, part)
        return True

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated key path.

        Example: config_manager.set("link.auto_link_entities", True)
        """
        self._modified_keys.add(key)

        parts = key.split(".")
        if len(parts) == 1:
            setattr(self.config, key, value)
            return

        parent: Any = self.config
        for part in parts[:-1]:
            parent = getattr(parent, part)
        setattr(parent, parts[-1], value)
