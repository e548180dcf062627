"""Command-line interface for inklink."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import Any, TypeVar

import click
from click import Context
from dotenv import load_dotenv
from loguru import logger
from rich.markup import escape

from inklink.cli.commands.config import config
from inklink.cli.console import get_stderr_console
from inklink.cli.logging_config import print_version, setup_logging
from inklink.config import ConfigManager, EnvVarNotFoundError, InklinkConfig
from inklink.exceptions import ConfigurationError, InklinkError
from inklink.links import rewrite_links
from inklink.ocr import AzureOCRClient
from inklink.parser import parse_occurrences
from inklink.transcribe import Transcriber
from inklink.utils.progress import ProgressReporter
from inklink.vault import Vault
from inklink.workflow import (
    convert_heic_in_note,
    link_entities,
    process_images_in_note,
    rewrite_note_links,
)

# Load .env file from current directory and parent directories
load_dotenv()

F = TypeVar("F", bound=Callable[..., Any])


def handle_errors(func: F) -> F:
    """Turn domain errors into a red one-line message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except InklinkError as e:
            logger.debug(f"{type(e).__name__}: {e}")
            get_stderr_console().print(f"[red]Error:[/red] {escape(str(e))}", highlight=False)
            raise SystemExit(1) from e

    return wrapper  # type: ignore[return-value]


def _bootstrap(ctx: Context) -> InklinkConfig:
    """Load configuration and set up logging for a command."""
    options = ctx.obj or {}
    manager = ConfigManager()
    cfg = manager.load(config_path=options.get("config_path"))

    setup_logging(
        verbose=options.get("verbose", False),
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        quiet=options.get("quiet", False),
    )

    if manager.config_path:
        logger.debug(f"[Config] Loaded from: {manager.config_path}")
    else:
        logger.debug("[Config] No config file found, using defaults")
    return cfg


def _progress(ctx: Context) -> ProgressReporter:
    options = ctx.obj or {}
    return ProgressReporter(enabled=not options.get("verbose") and not options.get("quiet"))


def _resolve_note(vault: Vault, note: str) -> str:
    """Accept a note as a filesystem path or a vault-relative path."""
    path = Path(note).expanduser()
    if path.exists():
        try:
            return path.resolve().relative_to(vault.root).as_posix()
        except ValueError:
            raise click.BadParameter(f"{note} is not inside the vault {vault.root}")
    return PurePosixPath(note).as_posix()


def _parse_replacements(values: tuple[str, ...]) -> dict[str, str]:
    replacements: dict[str, str] = {}
    for value in values:
        old, sep, new = value.partition("=")
        if not sep or not old.strip() or not new.strip():
            raise click.BadParameter(f"expected OLD=NEW, got '{value}'", param_hint="--replace")
        replacements[old.strip()] = new.strip()
    return replacements


def _build_ocr_client(cfg: InklinkConfig) -> AzureOCRClient:
    try:
        api_key = cfg.ocr.get_resolved_api_key(strict=True)
    except EnvVarNotFoundError as e:
        raise ConfigurationError(f"Azure OCR key not set: {e}") from e
    return AzureOCRClient(
        endpoint=cfg.ocr.endpoint,
        api_key=api_key,
        language=cfg.ocr.language,
        timeout=cfg.ocr.timeout,
    )


vault_option = click.option(
    "--vault",
    "-V",
    "vault_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Vault root directory.",
)


# =============================================================================
# Main CLI app
# =============================================================================


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option("--verbose", is_flag=True, help="Enable verbose output.")
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress and info messages, only show errors.",
)
@click.option(
    "--version",
    "-v",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.pass_context
def app(ctx: Context, config_path: Path | None, verbose: bool, quiet: bool) -> None:
    """inklink - transcribe handwritten note photos into markdown vaults.

    \b
    Examples:
        inklink process Journal/2024-05-01.md --vault ~/Notes
        inklink convert-heic Inbox/scan.md --vault ~/Notes
        inklink rewrite-links Inbox/scan.md -r a.heic=a.jpg --dry-run
        inklink link Inbox/scan.md draft.txt --vault ~/Notes
        inklink config list
    """
    ctx.ensure_object(dict)
    ctx.obj.update(config_path=config_path, verbose=verbose, quiet=quiet)


@app.command()
@click.argument("note")
@vault_option
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum images to process.")
@click.option(
    "--auto-link/--no-auto-link",
    default=None,
    help="Wikilink known note names and aliases in the transcription.",
)
@click.option(
    "--replace-heic/--no-replace-heic",
    default=None,
    help="Write JPEG copies of HEIC images and relink the note.",
)
@click.option(
    "--downscale/--no-downscale",
    default=None,
    help="Downscale images sent to the model (OCR stays full resolution).",
)
@click.pass_context
@handle_errors
def process(
    ctx: Context,
    note: str,
    vault_dir: Path,
    limit: int | None,
    auto_link: bool | None,
    replace_heic: bool | None,
    downscale: bool | None,
) -> None:
    """Transcribe the images in NOTE and prepend the result to it."""
    cfg = _bootstrap(ctx)
    if limit is not None:
        cfg.image.limit = limit
    if auto_link is not None:
        cfg.link.auto_link_entities = auto_link
    if replace_heic is not None:
        cfg.image.replace_heic_embeds = replace_heic
    if downscale is not None:
        cfg.image.downscale_for_llm = downscale

    vault = Vault(vault_dir)
    note_path = _resolve_note(vault, note)

    ocr = _build_ocr_client(cfg)
    transcriber = Transcriber(cfg.llm)
    transcriber.resolve_api_key()

    with _progress(ctx) as progress:
        try:
            result = asyncio.run(
                process_images_in_note(
                    vault,
                    note_path,
                    cfg,
                    ocr=ocr,
                    transcriber=transcriber,
                    progress=progress,
                )
            )
        except InklinkError:
            progress.fail(f"Processing {note_path} failed")
            raise

    logger.info(
        f"Complete: {result.images} image(s) transcribed into {result.note}"
        f" ({len(result.converted)} converted, {result.ocr_failures} OCR failure(s))"
    )


@app.command("convert-heic")
@click.argument("note")
@vault_option
@click.pass_context
@handle_errors
def convert_heic(ctx: Context, note: str, vault_dir: Path) -> None:
    """Convert HEIC images in NOTE to JPEG and relink them."""
    cfg = _bootstrap(ctx)
    vault = Vault(vault_dir)
    note_path = _resolve_note(vault, note)

    with _progress(ctx) as progress:
        converted = asyncio.run(convert_heic_in_note(vault, note_path, cfg, progress))

    logger.info(f"Complete: converted {converted} HEIC image(s) in {note_path}")


@app.command("rewrite-links")
@click.argument("note")
@vault_option
@click.option(
    "--replace",
    "-r",
    "replace",
    multiple=True,
    required=True,
    help="OLD=NEW vault paths; repeat for several resources.",
)
@click.option("--dry-run", is_flag=True, help="Print the rewritten note instead of saving it.")
@click.pass_context
@handle_errors
def rewrite_links_cmd(
    ctx: Context,
    note: str,
    vault_dir: Path,
    replace: tuple[str, ...],
    dry_run: bool,
) -> None:
    """Point NOTE's links at replaced resources, keeping display text and sizes."""
    _bootstrap(ctx)
    vault = Vault(vault_dir)
    note_path = _resolve_note(vault, note)
    replacements = _parse_replacements(replace)

    if dry_run:
        text = vault.read_text(note_path)
        click.echo(
            rewrite_links(
                text,
                parse_occurrences(text),
                replacements,
                source=note_path,
                resolve=vault.resolve_link,
                to_link_text=vault.link_text,
            ),
            nl=False,
        )
        return

    changed = rewrite_note_links(vault, note_path, replacements)
    if not changed:
        get_stderr_console().print(f"[dim]No matching links in {note_path}[/dim]")


@app.command("link")
@click.argument("note")
@click.argument("text_file", type=click.File("r", encoding="utf-8"), default="-")
@vault_option
@click.pass_context
@handle_errors
def link_cmd(ctx: Context, note: str, text_file: Any, vault_dir: Path) -> None:
    """Wikilink known note names in TEXT_FILE (or stdin) as written from NOTE."""
    _bootstrap(ctx)
    vault = Vault(vault_dir)
    note_path = _resolve_note(vault, note)
    click.echo(link_entities(vault, note_path, text_file.read()), nl=False)


app.add_command(config)
