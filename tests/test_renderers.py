from pathlib import Path

import pytest

from fleen.errors import FileReadError, FrontmatterParseError, MarkdownParseError
from fleen.extractors import Frontmatter, extract_frontmatter
from fleen.outputs import Hidden, Rendered
from fleen.renderers import (
    MarkdownRenderer,
    _generate_heading_id,
    apply_layout,
    render_markdown,
)

LAYOUT = (
    "<!DOCTYPE html>\n<html><head><title>$title</title></head>"
    "<body>$content</body></html>\n"
)


def create_site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    (root / "_layouts").mkdir(parents=True)
    (root / "_layouts" / "default.html").write_text(LAYOUT, encoding="utf-8")
    (root / "index.md").write_text(
        "+++\n"
        'layout = "_layouts/default.html"\n'
        'title = "Pest Toast"\n'
        "+++\n"
        "# Welcome\n\n"
        "```rust\nfn main() {}\n```\n\n"
        "| a | b |\n| - | - |\n| 1 | 2 |\n",
        encoding="utf-8",
    )
    (root / "nolayout.md").write_text("This file has no layout\n", encoding="utf-8")
    (root / "hidden.md").write_text(
        "+++\n"
        'layout = "_layouts/default.html"\n'
        "published = false\n"
        "+++\n"
        "This file should render to hidden\n",
        encoding="utf-8",
    )
    return root


def test_markdown_with_layout(tmp_path):
    root = create_site(tmp_path)
    output = render_markdown(Path("index.md"), root)
    assert isinstance(output, Rendered)
    assert output.output_path == Path("index.html")
    assert output.content.startswith("<!DOCTYPE html>")
    assert "<title>Pest Toast</title>" in output.content
    assert '<code class="language-rust">' in output.content
    assert "<table>" in output.content
    assert "$content" not in output.content


def test_no_frontmatter_is_plain_conversion(tmp_path):
    root = create_site(tmp_path)
    output = render_markdown(Path("nolayout.md"), root)
    assert output == Rendered(
        Path("nolayout.html"), MarkdownRenderer().render("This file has no layout\n")
    )
    assert output.content.startswith("<p>This file has no layout")


def test_published_false_is_hidden(tmp_path):
    root = create_site(tmp_path)
    output = render_markdown(Path("hidden.md"), root)
    assert isinstance(output, Hidden)
    assert output.output_path == Path("hidden.html")
    assert output.content.startswith("<!DOCTYPE html>")
    assert "This file should render to hidden" in output.content


def test_published_true_and_missing_title(tmp_path):
    root = create_site(tmp_path)
    (root / "explicit.md").write_text(
        '+++\nlayout = "_layouts/default.html"\npublished = true\n+++\nBody\n',
        encoding="utf-8",
    )
    output = render_markdown(Path("explicit.md"), root)
    assert isinstance(output, Rendered)
    assert "<title></title>" in output.content


def test_frontmatter_without_layout_is_not_wrapped(tmp_path):
    root = create_site(tmp_path)
    (root / "bare.md").write_text('+++\ntitle = "Only Title"\n+++\nHello\n', encoding="utf-8")
    output = render_markdown(Path("bare.md"), root)
    assert output == Rendered(Path("bare.html"), "<p>Hello</p>\n")


def test_yaml_frontmatter(tmp_path):
    root = create_site(tmp_path)
    (root / "posts").mkdir()
    (root / "posts" / "draft.md").write_text(
        "---\nlayout: _layouts/default.html\ntitle: Yaml Page\npublished: false\n---\nText\n",
        encoding="utf-8",
    )
    output = render_markdown(Path("posts/draft.md"), root)
    assert isinstance(output, Hidden)
    assert output.output_path == Path("posts/draft.html")
    assert "Yaml Page" in output.content


def test_malformed_frontmatter(tmp_path):
    root = create_site(tmp_path)
    (root / "bad.md").write_text("+++\nlayout = \n+++\nBody\n", encoding="utf-8")
    with pytest.raises(FrontmatterParseError) as excinfo:
        render_markdown(Path("bad.md"), root)
    assert excinfo.value.source_path == Path("bad.md")
    assert "bad.md" in str(excinfo.value)


def test_published_must_be_boolean():
    with pytest.raises(FrontmatterParseError):
        extract_frontmatter("---\npublished: maybe\n---\nBody\n", Path("x.md"))


def test_yaml_frontmatter_must_be_mapping():
    with pytest.raises(FrontmatterParseError):
        extract_frontmatter("---\n- a\n- b\n---\nBody\n", Path("x.md"))


def test_extract_frontmatter_absent():
    frontmatter, body = extract_frontmatter("# Title\n\nText", Path("x.md"))
    assert frontmatter is None
    assert body == "# Title\n\nText"


def test_extract_frontmatter_strips_block():
    frontmatter, body = extract_frontmatter('+++\ntitle = "T"\n+++\n# Heading\n', Path("x.md"))
    assert frontmatter == Frontmatter(layout=None, title="T", published=True)
    assert body == "# Heading\n"


def test_missing_layout_is_read_error(tmp_path):
    root = create_site(tmp_path)
    (root / "orphan.md").write_text(
        '+++\nlayout = "_layouts/missing.html"\n+++\nBody\n', encoding="utf-8"
    )
    with pytest.raises(FileReadError) as excinfo:
        render_markdown(Path("orphan.md"), root)
    assert excinfo.value.source_path == Path("_layouts/missing.html")


def test_layout_outside_root_is_read_error(tmp_path):
    root = create_site(tmp_path)
    (tmp_path / "outside.html").write_text("$content", encoding="utf-8")
    (root / "escape.md").write_text(
        '+++\nlayout = "../outside.html"\n+++\nBody\n', encoding="utf-8"
    )
    with pytest.raises(FileReadError) as excinfo:
        render_markdown(Path("escape.md"), root)
    assert excinfo.value.source_path == Path("../outside.html")
    assert "inside the site root" in excinfo.value.message


def test_missing_source_is_read_error(tmp_path):
    root = create_site(tmp_path)
    with pytest.raises(FileReadError) as excinfo:
        render_markdown(Path("nope.md"), root)
    assert excinfo.value.source_path == Path("nope.md")


def test_invalid_utf8_is_parse_error(tmp_path):
    root = create_site(tmp_path)
    (root / "binary.md").write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(MarkdownParseError):
        render_markdown(Path("binary.md"), root)


def test_code_highlighting_keeps_language_class():
    html = MarkdownRenderer().render("```python\nprint('hi')\n```\n")
    assert html.startswith('<pre><code class="language-python">')
    assert "<span" in html


def test_code_without_highlighting_is_escaped():
    html = MarkdownRenderer(highlight=False).render("```html\n<b>x</b>\n```\n")
    assert html == '<pre><code class="language-html">&lt;b&gt;x&lt;/b&gt;\n</code></pre>\n'


def test_unknown_language_falls_back_to_escaped():
    html = MarkdownRenderer().render("```nosuchlang\na < b\n```\n")
    assert '<code class="language-nosuchlang">a &lt; b' in html


def test_heading_ids_are_unique():
    html = MarkdownRenderer().render("# Hello World\n\n## Hello World\n")
    assert '<h1 id="hello-world">' in html
    assert '<h2 id="hello-world-1">' in html


def test_generate_heading_id():
    assert _generate_heading_id("Hello, World!") == "hello-world"
    assert _generate_heading_id("<em>Big</em> Deal") == "big-deal"


def test_apply_layout_is_verbatim():
    result = apply_layout("<h1>$title</h1>$content", "A & B", "<p>x</p>")
    assert result == "<h1>A & B</h1><p>x</p>"
