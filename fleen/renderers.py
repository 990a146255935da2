"""Markdown rendering for Fleen.

This module turns one Markdown source into a Rendered or Hidden output:
front-matter is split off, the body converted to HTML with mistune, and the
result optionally wrapped in a layout template.

Key items:
- MarkdownRenderer: Markdown to HTML with GFM tables and highlighted code fences.
- apply_layout: Substitute ``$title`` and ``$content`` into a layout template.
- render_markdown: Read, parse and classify a Markdown source.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import FileReadError, MarkdownParseError
from .extractors import Frontmatter, extract_frontmatter
from .outputs import Hidden, Rendered

MARKDOWN_PLUGINS = ["table", "strikethrough", "footnotes", "url"]


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _escape_code(code: str) -> str:
    return code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with heading anchors and language-tagged code blocks.

    Attributes:
        highlight: Whether to run Pygments over fenced code.
    """

    def __init__(self, highlight: bool = True):
        super().__init__(escape=False)
        self.highlight = highlight
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, keeping the language as a CSS class.

        The block is always ``<pre><code class="language-x">``; with
        highlighting on, the inner text is Pygments token spans so both
        client-side and server-side styling work.
        """
        lang = info.split()[0] if info and info.strip() else ""
        body = _escape_code(code)
        if lang and self.highlight:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                body = highlight(code, lexer, HtmlFormatter(nowrap=True))
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{body}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    GitHub-flavoured tables, strikethrough, footnotes and bare URLs are
    enabled. Raw HTML inside Markdown is passed through unchanged.
    """

    def __init__(self, highlight: bool = True):
        self.highlight = highlight

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source without front-matter.

        Returns:
            Rendered HTML.
        """
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(self.highlight), plugins=MARKDOWN_PLUGINS
        )
        return markdown(content)


def apply_layout(template: str, title: str, content: str) -> str:
    """Substitute the page title and body into a layout template.

    Both placeholders are replaced verbatim, without escaping, ``$title`` first.
    """
    return template.replace("$title", title).replace("$content", content)


def _read_text(root: Path, rel: Path) -> str:
    try:
        data = (root / rel).read_bytes()
    except OSError as exc:
        raise FileReadError(rel, exc) from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MarkdownParseError(rel, exc) from exc


def render_markdown(
    source: Path, root: Path, renderer: MarkdownRenderer | None = None
) -> Rendered | Hidden:
    """Render a Markdown source file into its output.

    Args:
        source: Path of the Markdown file relative to root.
        root: Site root directory.
        renderer: Optional preconfigured renderer.

    Returns:
        Rendered, or Hidden when the front-matter says ``published = false``.
        The output path is the source path with an ``.html`` extension.

    Raises:
        FileReadError: If the source or its layout cannot be read, or the
            layout lies outside the site root.
        MarkdownParseError: If the source is not valid UTF-8 or fails to parse.
        FrontmatterParseError: If the front-matter block is malformed.
    """
    renderer = renderer or MarkdownRenderer()
    text = _read_text(root, source)
    frontmatter, body = extract_frontmatter(text, source)
    try:
        html = renderer.render(body)
    except Exception as exc:
        raise MarkdownParseError(source, exc) from exc

    output_path = source.with_suffix(".html")
    if frontmatter is None:
        return Rendered(output_path, html)
    return _classify(frontmatter, html, output_path, root)


def _classify(
    frontmatter: Frontmatter, html: str, output_path: Path, root: Path
) -> Rendered | Hidden:
    if frontmatter.layout:
        layout_path = Path(frontmatter.layout)
        layout_file = (root / layout_path).resolve()
        if not layout_file.is_relative_to(root.resolve()):
            raise FileReadError(
                layout_path, ValueError("layout must be inside the site root")
            )
        try:
            template = layout_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileReadError(layout_path, exc) from exc
        html = apply_layout(template, frontmatter.title, html)
    if frontmatter.published:
        return Rendered(output_path, html)
    return Hidden(output_path, html)
