"""Utility functions for Fleen.

Small path helpers shared by the classifier, the tree walker, the build
orchestrator and the site handle.

Key functions:
    is_skipped_path: Check for ``..`` or underscore-prefixed segments.
    is_hidden_name: Check for dotfile names.
    is_markdown: Check if a path is a Markdown file.
    clean_dir: Empty a directory without removing it.
    request_to_relative: Turn a URL path into a site-relative path.
    unique_image_name: Pick an unused random image filename.
"""

from __future__ import annotations

import secrets
import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import unquote

from .errors import FileIoError


def is_skipped_path(path: Path) -> bool:
    """Check if any segment of a relative path is ``..`` or starts with ``_``.

    Underscore segments hold layouts, scripts and drafts; ``..`` would escape
    the site root. Both are invisible to builds and to the preview.

    Args:
        path: Path relative to the site root.

    Returns:
        True if the path must never produce output.

    Examples:
        >>> is_skipped_path(Path("_layouts/default.html"))
        True

        >>> is_skipped_path(Path("posts/hello.md"))
        False
    """
    return any(part == ".." or part.startswith("_") for part in path.parts)


def is_hidden_name(name: str) -> bool:
    """Check if a file or directory name is a dotfile."""
    return name.startswith(".")


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() == ".md"


def is_html(path: Path) -> bool:
    """Check if a path has an .html extension (case-insensitive)."""
    return path.suffix.lower() == ".html"


def is_same_or_nested(a: Path, b: Path) -> bool:
    """Check if two resolved paths are equal or one contains the other."""
    return a == b or a.is_relative_to(b) or b.is_relative_to(a)


def clean_dir(path: Path) -> None:
    """Remove every entry inside a directory, creating it if missing.

    The directory itself is kept so that callers holding it open (a shell, a
    file browser) are not disturbed.

    Args:
        path: Directory to empty.

    Raises:
        FileIoError: If an entry cannot be removed or the directory created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        entries = list(path.iterdir())
    except OSError as exc:
        raise FileIoError(path, str(exc)) from exc
    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as exc:
            raise FileIoError(entry, str(exc)) from exc


def request_to_relative(request_path: str) -> Path:
    """Convert a URL path into a path relative to the site root.

    The query string and fragment are dropped, percent-escapes decoded and
    leading slashes removed. ``..`` segments are kept so the classifier can
    reject them.

    Args:
        request_path: Raw path from an HTTP request line.

    Returns:
        Relative path, empty (``Path("")``) for the root.

    Examples:
        >>> request_to_relative("/posts/hello.html?x=1")
        PosixPath('posts/hello.html')
    """
    path = request_path.split("?", 1)[0].split("#", 1)[0]
    path = unquote(path)
    parts = [p for p in PurePosixPath(path).parts if p not in ("/", ".")]
    return Path(*parts) if parts else Path("")


def unique_image_name(image_dir: Path) -> Path:
    """Return an unused ``image_<8 hex digits>.png`` path inside image_dir.

    Args:
        image_dir: Directory the image will be written to.

    Returns:
        Path that does not exist yet.
    """
    while True:
        candidate = image_dir / f"image_{secrets.token_hex(4)}.png"
        if not candidate.exists():
            return candidate
