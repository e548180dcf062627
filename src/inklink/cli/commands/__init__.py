"""CLI subcommand groups."""

from inklink.cli.commands.config import config

__all__ = ["config"]
