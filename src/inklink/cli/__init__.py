"""CLI package for inklink.

Usage:
    from inklink.cli import app
"""

from __future__ import annotations

from inklink.cli.main import app

__all__ = ["app"]
