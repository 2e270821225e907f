"""
Tests for the rendering pipeline:
- Markdown subset → HTML, with escaping before any tag is introduced
- HTML sanitization (dangerous tags, handlers, script URLs)
- Idempotence on already rendered output
"""

import pytest

from tutorbot.api.rendering import (
    FORMAT_HTML,
    FORMAT_MARKDOWN,
    format_hint,
    looks_like_html,
    markdown_to_html,
    render,
    render_plain,
    sanitize_html,
    strip_markup,
)


# =============================================================================
# Markdown
# =============================================================================

class TestMarkdown:

    def test_plain_paragraph(self):
        assert render("Hello world") == "<p>Hello world</p>"

    def test_lines_join_with_br_and_blank_line_splits(self):
        assert render("one\ntwo\n\nthree") == "<p>one<br>two</p><p>three</p>"

    def test_headings_and_rules(self):
        assert markdown_to_html("## Plan\n---\ntext") == "<h2>Plan</h2><hr/><p>text</p>"

    def test_bold_and_italic(self):
        assert render("**bold** and *soft*") == "<p><strong>bold</strong> and <em>soft</em></p>"

    def test_italic_needs_whitespace_boundaries(self):
        assert render("2*3*4") == "<p>2*3*4</p>"

    def test_text_is_escaped(self):
        assert render("a < b & c") == "<p>a &lt; b &amp; c</p>"

    def test_autolink_leaves_trailing_punctuation_outside(self):
        out = render("See https://example.com/page.")
        assert '<a href="https://example.com/page" target="_blank" rel="noopener noreferrer">' in out
        assert out.endswith("</a>.</p>")

    def test_empty(self):
        assert render("") == ""


# =============================================================================
# Sanitizer
# =============================================================================

class TestSanitizer:

    def test_script_block_removed(self):
        assert render("<p>hi</p><script>alert(1)</script>") == "<p>hi</p>"

    def test_event_handler_removed(self):
        assert sanitize_html('<img src="x.png" onerror="alert(1)">') == '<img src="x.png">'

    def test_javascript_href_removed(self):
        assert sanitize_html('<a href="javascript:alert(1)">x</a>') == "<a>x</a>"

    def test_obfuscated_javascript_href_removed(self):
        assert sanitize_html('<a href=" java\tscript:alert(1)">x</a>') == "<a>x</a>"

    def test_data_image_src_kept(self):
        markup = '<img src="data:image/png;base64,iVBORw0KGgo=" alt="shot">'
        assert sanitize_html(markup) == markup

    def test_data_uri_in_href_removed(self):
        assert sanitize_html('<a href="data:text/html;base64,PHNjcmlwdD4=">x</a>') == "<a>x</a>"

    def test_nested_tag_cannot_reassemble(self):
        assert "<script" not in sanitize_html("<scr<script></script>ipt>alert(1)</script>").lower()

    def test_style_with_url_removed(self):
        assert sanitize_html('<p style="background:url(x)">a</p>') == "<p>a</p>"

    def test_safe_markup_untouched(self):
        markup = '<h3>Title</h3><ul><li><strong>a</strong></li></ul>'
        assert sanitize_html(markup) == markup

    @pytest.mark.parametrize(
        "markup, expected",
        [
            ("<img/onerror=alert(1) src=x>", "<img src=x>"),
            ('<img src="x"onerror="alert(1)">', '<img src="x">'),
            ('<a href="#"onclick="alert(1)">x</a>', '<a href="#">x</a>'),
            ('<a/href="javascript:alert(1)">x</a>', "<a>x</a>"),
            ('<a title="a>b" onclick="x()">t</a>', '<a title="a>b">t</a>'),
        ],
    )
    def test_attributes_without_whitespace_separator(self, markup, expected):
        assert render(markup) == expected
        assert sanitize_html(markup) == expected

    def test_unterminated_tag_is_escaped(self):
        assert sanitize_html("<p>x</p><img src=x onerror=alert(1)") == "<p>x</p>&lt;img src=x onerror=alert(1)"

    def test_malformed_tag_name_is_escaped(self):
        assert sanitize_html('<a"onclick=alert(1)>x</a>') == '&lt;a"onclick=alert(1)>x</a>'

    def test_end_tag_attributes_dropped(self):
        assert sanitize_html('<p>a</p onclick="x()">') == "<p>a</p>"

    def test_self_closing_and_trailing_slash_urls(self):
        assert sanitize_html("<br />") == "<br/>"
        assert sanitize_html("<a href=http://x.org/>y</a>") == "<a href=http://x.org/>y</a>"


# =============================================================================
# Idempotence
# =============================================================================

class TestIdempotence:

    @pytest.mark.parametrize(
        "source",
        [
            "Hello world",
            "a < b & c",
            "# Title\n**bold** *it* https://example.com",
            "<p>already <em>html</em></p><script>x()</script>",
            '<img/onerror=alert(1) src="data:image/png;base64,AAAA"><br />',
        ],
    )
    def test_render_twice_is_stable(self, source):
        once = render(source)
        assert render(once) == once

    def test_sanitize_is_idempotent(self):
        once = sanitize_html('<div onclick="x()"><a href="javascript:y()">z</a></div>')
        assert sanitize_html(once) == once


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:

    def test_format_hint(self):
        assert format_hint("<p>x") == FORMAT_HTML
        assert format_hint("plain **md**") == FORMAT_MARKDOWN

    def test_looks_like_html_ignores_comparisons(self):
        assert not looks_like_html("if a < b and c > d")

    def test_render_plain(self):
        assert render_plain("<b>\nx") == "&lt;b&gt;<br>x"

    def test_strip_markup(self):
        text = '<p>Intro &amp; aims</p><img src="data:image/png;base64,AAAA"><script>bad()</script><p>Next</p>'
        assert strip_markup(text) == "Intro & aims\n\nNext"

    def test_strip_markup_list_items_are_lines(self):
        assert strip_markup("<h2>Plan</h2><ul><li>a</li><li>b</li></ul><p>End</p>") == "Plan\n\na\nb\n\nEnd"
