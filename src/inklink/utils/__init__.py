"""inklink utilities."""

from inklink.utils.frontmatter import (
    extract_aliases,
    parse_frontmatter,
    split_frontmatter,
)
from inklink.utils.progress import ProgressReporter

__all__ = [
    # Frontmatter
    "extract_aliases",
    "parse_frontmatter",
    "split_frontmatter",
    # Progress
    "ProgressReporter",
]
