"""Logging configuration for the inklink CLI.

Key features:
- Unified loguru-based logging with consistent formatting
- Intercepts third-party library logs (litellm, httpx, PIL) at WARNING+
- DEBUG goes to the log file only; the console shows INFO and above
"""

from __future__ import annotations

import logging
import os
import sys
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from inklink import __version__
from inklink.cli.console import get_console
from inklink.constants import (
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    LOG_DIR_ENV_VAR,
)

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    "LiteLLM",
    "LiteLLM Router",
    "litellm",
    "httpx",
    "httpcore",
    "openai",
    "PIL",
    "PIL.Image",
    "asyncio",
]

# Warning messages to suppress (regex patterns)
SUPPRESSED_WARNINGS = [
    r"coroutine 'close_litellm_async_clients' was never awaited",
    r"Field .* has conflict with protected namespace",
]

# INFO messages shown on the console outside verbose mode
_MILESTONE_KEYWORDS = ("Written", "Converted", "Linked", "Complete")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and forward to loguru.

    Uses the record's own location info instead of frame tracing.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = DEFAULT_LOG_ROTATION,
    retention: str = DEFAULT_LOG_RETENTION,
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure logging based on configuration.

    Args:
        verbose: Show every INFO message on the console, not just milestones.
        log_dir: Directory for log files. Supports ~ expansion.
                 Can be overridden by INKLINK_LOG_DIR env var.
        log_level: Log level for file output.
        rotation: Log file rotation size.
        retention: Log file retention period.
        quiet: If True, disable console logging entirely.
               Logs will still be written to file if log_dir is configured.

    Returns:
        Tuple of (console_handler_id, log_file_path).
    """
    for pattern in SUPPRESSED_WARNINGS:
        warnings.filterwarnings("ignore", message=pattern)

    logger.remove()

    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = logger.add(
            sys.stderr,
            level="INFO",
            format=CONSOLE_FORMAT,
            filter=lambda record: _should_show_log(record, verbose),
        )

    env_log_dir = os.environ.get(LOG_DIR_ENV_VAR)
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"inklink_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_level,
            rotation=rotation,
            retention=retention,
            format=FILE_FORMAT,
        )

    _setup_log_interception()

    return console_handler_id, log_file_path


def _setup_log_interception() -> None:
    """Route third-party stdlib logging into loguru, WARNING+ only."""
    intercept_handler = InterceptHandler()

    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def _is_third_party_log(name: str) -> bool:
    """Check if a log comes from an intercepted library.

    Exact or dotted-prefix match, so "PIL" does not match "compiler".
    """
    name_lower = name.lower()
    for intercepted in INTERCEPTED_LOGGERS:
        intercepted_lower = intercepted.lower()
        if name_lower == intercepted_lower or name_lower.startswith(f"{intercepted_lower}."):
            return True
    return False


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Filter function for console logging."""
    level = record["level"].name

    if level == "DEBUG":
        return False

    if level in ("WARNING", "ERROR", "CRITICAL"):
        return True

    if _is_third_party_log(record.get("extra", {}).get("name", "")):
        return False

    if not verbose:
        message = record.get("message", "")
        return any(keyword in message for keyword in _MILESTONE_KEYWORDS)

    return True


def print_version(ctx: Context, param: Any, value: bool) -> None:  # noqa: ARG001
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    get_console().print(f"inklink {__version__}")
    ctx.exit(0)
