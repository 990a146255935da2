"""Front-matter extraction for Fleen.

A Markdown source may start with one structured metadata block:

    +++                         ---
    layout = "_layouts/x.html"  layout: _layouts/x.html
    title = "Pest Toast"        title: Pest Toast
    published = false           published: false
    +++                         ---

TOML blocks (``+++``) are parsed with tomllib, YAML blocks (``---``) with
PyYAML. Only the first block at the very top of the document counts.

Key items:
- Frontmatter: Dataclass holding layout, title and published.
- extract_frontmatter: Split a source into (Frontmatter | None, body).
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import FrontmatterParseError

TOML_FRONTMATTER_RE = re.compile(r"\A\+\+\+[ \t]*\r?\n(.*?)^\+\+\+[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
YAML_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)


@dataclass
class Frontmatter:
    """Metadata controlling how a Markdown page is laid out and published.

    Attributes:
        layout: Template path relative to the site root, if any.
        title: Page title substituted for ``$title``.
        published: False marks the page hidden (preview only).
    """

    layout: str | None = None
    title: str = ""
    published: bool = True

    @classmethod
    def from_mapping(cls, data: dict[str, Any], source: Path) -> Frontmatter:
        """Build a Frontmatter from a parsed mapping, validating field types."""
        published = data.get("published", True)
        if not isinstance(published, bool):
            raise FrontmatterParseError(
                source, f"'published' must be true or false, got {published!r}"
            )
        layout = data.get("layout")
        title = data.get("title")
        return cls(
            layout=str(layout) if layout else None,
            title="" if title is None else str(title),
            published=published,
        )


def _parse_toml(block: str, source: Path) -> Any:
    try:
        return tomllib.loads(block)
    except tomllib.TOMLDecodeError as exc:
        raise FrontmatterParseError(source, str(exc), exc) from exc


def _parse_yaml(block: str, source: Path) -> Any:
    try:
        return yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise FrontmatterParseError(source, str(exc), exc) from exc


def extract_frontmatter(text: str, source: Path) -> tuple[Frontmatter | None, str]:
    """Extract the front-matter block from Markdown text.

    Args:
        text: Raw file content.
        source: Path of the source, used in error messages.

    Returns:
        Tuple of (Frontmatter or None when absent, remaining content).

    Raises:
        FrontmatterParseError: If the block is malformed or not a mapping.
    """
    match = TOML_FRONTMATTER_RE.match(text)
    if match:
        data = _parse_toml(match.group(1), source)
    else:
        match = YAML_FRONTMATTER_RE.match(text)
        if not match:
            return None, text
        data = _parse_yaml(match.group(1), source)
        if data is None:
            data = {}
    if not isinstance(data, dict):
        raise FrontmatterParseError(source, "frontmatter must be a table of keys")
    return Frontmatter.from_mapping(data, source), text[match.end() :]
