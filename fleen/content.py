"""Source path classification for Fleen.

Every path under a site root is decided here, for full builds and for live
preview alike. The rules, in order:

1. A ``..`` segment or any segment starting with ``_`` produces nothing.
2. A directory produces a Dir output.
3. ``.md`` files are rendered; anything else that exists is copied raw.

The preview differs in exactly one place: a request for ``foo.html`` that does
not exist on disk is answered by rendering ``foo.md`` when that exists, and a
missing Markdown file is a plain 404 instead of a read error.

Key items:
- PathKind / classify_path: The pure classification step.
- render: Classify and render one relative path.
- resolve_request: Map an HTTP request path to a single output.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from .outputs import NO_OUTPUT, Dir, RawFile, RenderOutput
from .renderers import MarkdownRenderer, render_markdown
from .utils import is_html, is_markdown, is_skipped_path, request_to_relative

DEFAULT_DOCUMENT = "index.html"


class PathKind(Enum):
    """What a relative source path is, before any rendering happens."""

    SKIPPED = "skipped"
    DIR = "dir"
    MARKDOWN = "markdown"
    RAW = "raw"
    MISSING = "missing"


def classify_path(source: Path, root: Path) -> PathKind:
    """Classify a path relative to the site root.

    Args:
        source: Relative path (never absolute).
        root: Site root used for existence checks.

    Returns:
        The PathKind for the path. A path the OS refuses to stat (a name
        that is too long, for one) is MISSING.
    """
    if is_skipped_path(source):
        return PathKind.SKIPPED
    absolute = root / source
    try:
        if absolute.is_dir():
            return PathKind.DIR
        if is_markdown(source):
            return PathKind.MARKDOWN if absolute.is_file() else PathKind.MISSING
        if absolute.exists():
            return PathKind.RAW
    except OSError:
        return PathKind.MISSING
    return PathKind.MISSING


def render(
    source: Path,
    root: Path,
    preview: bool = False,
    renderer: MarkdownRenderer | None = None,
) -> RenderOutput:
    """Decide and produce the output for one source path.

    Args:
        source: Path relative to the site root.
        root: Site root directory.
        preview: Apply preview-only rules (``.html`` to ``.md`` fallback,
            missing Markdown as no output).
        renderer: Optional preconfigured Markdown renderer.

    Returns:
        The RenderOutput for the path.

    Raises:
        RenderError: If a Markdown source or its layout fails to render.
    """
    kind = classify_path(source, root)
    if kind is PathKind.SKIPPED:
        return NO_OUTPUT
    if kind is PathKind.DIR:
        return Dir(source)
    if kind is PathKind.RAW:
        return RawFile(source)
    if kind is PathKind.MARKDOWN:
        return render_markdown(source, root, renderer)

    if not preview:
        if is_markdown(source):
            # Build callers only pass paths they found on disk
            return render_markdown(source, root, renderer)
        return NO_OUTPUT
    if is_html(source):
        fallback = source.with_suffix(".md")
        if classify_path(fallback, root) is PathKind.MARKDOWN:
            return render_markdown(fallback, root, renderer)
    return NO_OUTPUT


def resolve_request(
    request_path: str,
    root: Path,
    default_document: str = DEFAULT_DOCUMENT,
    renderer: MarkdownRenderer | None = None,
) -> RenderOutput:
    """Resolve a preview request into the single output that answers it.

    Args:
        request_path: Raw URL path from the request (query strings allowed).
        root: Site root directory.
        default_document: Document served for ``/``.
        renderer: Optional preconfigured Markdown renderer.

    Returns:
        The RenderOutput for the request. The caller maps NoOutput and Dir to
        404 and RenderError to 500.
    """
    relative = request_to_relative(request_path)
    if not relative.parts:
        relative = Path(default_document)
    return render(relative, root, preview=True, renderer=renderer)
