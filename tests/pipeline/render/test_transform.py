"""Tests for body transformations (Markdown, text fallback, CSS inlining)."""

import pytest

from mailmerge.exceptions import CssInlineError
from mailmerge.pipeline.render import html_to_text, inline_css, load_css, markdown_to_html
from mailmerge.pipeline.render import transform


def test_markdown_to_html_heading_and_emphasis():
    """Test Markdown to html heading and emphasis."""
    html = markdown_to_html("# Hello Ana\n\nWelcome **back**.")
    assert "<h1>Hello Ana</h1>" in html
    assert "<strong>back</strong>" in html


def test_markdown_to_html_autolinks_bare_urls():
    """Test Markdown to html autolinks bare urls."""
    html = markdown_to_html("Details: https://school.org/info")
    assert 'href="https://school.org/info"' in html


def test_markdown_to_html_supports_tables_and_fenced_code():
    """Test Markdown to html supports tables and fenced code."""
    html = markdown_to_html("| a | b |\n|---|---|\n| 1 | 2 |\n\n```\ncode\n```\n")
    assert "<table>" in html
    assert "<code>" in html


def test_html_to_text_strips_tags_and_collapses_blank_runs():
    """Test Html to text strips tags and collapses blank runs."""
    html = "<h1>Hello &amp; welcome</h1>\n\n\n\n<p>Line <em>two</em></p>\n"
    assert html_to_text(html) == "Hello & welcome\n\nLine two"


def test_html_to_text_separates_markdown_paragraphs():
    """Test Html to text separates markdown paragraphs."""
    html = markdown_to_html("# Title\n\nPara one.\n\nPara two.\n")
    assert html_to_text(html) == "Title\n\nPara one.\n\nPara two."


def test_html_to_text_ignores_indentation_between_blocks():
    """Test Html to text ignores indentation between blocks."""
    assert html_to_text("<h1>A</h1><p>B<br>C</p>") == "A\n\nB\nC"
    assert html_to_text("<h1>A</h1>\n  \n<p>B<br>C</p>\n") == "A\n\nB\nC"


def test_html_to_text_lists_and_tables():
    """Test Html to text lists and tables."""
    html = markdown_to_html("Items:\n\n- one\n- two\n\n| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert html_to_text(html) == "Items:\n\none\ntwo\n\na b\n1 2"


def test_inline_css_moves_rules_into_style_attributes():
    """Test Inline css moves rules into style attributes."""
    html = '<h1>Title</h1>\n<p class="note">Hi</p>'
    result = inline_css(html, "h1 { color: navy } .note { color: red }")
    compact = result.replace(" ", "")
    assert 'style="color:navy"' in compact
    assert 'style="color:red"' in compact
    assert 'class="note"' in result
    assert "<style" not in result
    assert "mailmerge-body" not in result
    assert result.count("<p") == 1


def test_inline_css_without_css_returns_input():
    """Test Inline css without css returns input."""
    assert inline_css("<p>x</p>", None) == "<p>x</p>"
    assert inline_css("<p>x</p>", "   ") == "<p>x</p>"


def test_inline_css_wraps_inliner_failures(monkeypatch):
    """Test Inline css wraps inliner failures."""

    class Broken:
        def __init__(self, *args, **kwargs):
            raise ValueError("bad css")

    monkeypatch.setattr(transform, "Premailer", Broken)
    with pytest.raises(CssInlineError) as exc_info:
        inline_css("<p>x</p>", "p { color: red }")
    assert "bad css" in exc_info.value.message
    assert exc_info.value.code == "CSS_INLINE"


def test_load_css_concatenates_stylesheet_then_style(make_template, tmp_path):
    """Test Load css concatenates stylesheet then style."""
    (tmp_path / "mail.css").write_text("h1 { color: navy }", encoding="utf-8")
    template = make_template(
        "sources: {p: {primary: true}}\nto: a\nsubject: s\nbody: b\n"
        "stylesheet: mail.css\nstyle: 'p { margin: 0 }'\n"
    )
    assert load_css(template) == "h1 { color: navy }\np { margin: 0 }"


def test_load_css_skips_missing_stylesheet(make_template, caplog):
    """Test Load css skips missing stylesheet."""
    caplog.set_level("WARNING")
    template = make_template(
        "sources: {p: {primary: true}}\nto: a\nsubject: s\nbody: b\n"
        "stylesheet: missing.css\n"
    )
    assert load_css(template) is None
    assert "missing.css" in caplog.text
