"""
Rendering — text to safe HTML.

Pure, deterministic helpers shared by turn persistence and stream preview:

- `render(text)`: sanitize text that already looks like HTML, otherwise escape
  it and convert a small Markdown dialect.
- `render_plain(text)`: escaped text with ``<br>`` line breaks, for user turns.
- `strip_markup(text)`: plain text for the oracle (no tags, no data URIs).

`sanitize_html` removes dangerous elements, event-handler attributes and
script-capable URLs. Every tag is re-emitted with single spaces between its
attributes, and a ``<`` that does not open a well-formed tag is escaped.
Markup this module produces is already in that form, so sanitizing it is a
no-op and `render(render(x)) == render(x)`.
"""

import html
import re

FORMAT_HTML = "html"
FORMAT_MARKDOWN = "markdown"

_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][a-zA-Z0-9:-]*(?:[\s/][^<>]*)?>")

_DANGEROUS_TAGS = (
    "script", "style", "iframe", "frame", "frameset", "object", "embed",
    "applet", "noscript", "template", "base", "meta", "link",
)
_DANGEROUS_BLOCK_RE = re.compile(
    r"<(%s)\b[^>]*>[\s\S]*?</\1\s*>" % "|".join(_DANGEROUS_TAGS), re.IGNORECASE
)
_DANGEROUS_TAG_RE = re.compile(r"</?(?:%s)\b[^>]*>" % "|".join(_DANGEROUS_TAGS), re.IGNORECASE)

# Any start or end tag, with quoted values allowed to contain ``>``; a ``<`` that
# could open markup but does not form such a tag is matched by the second branch.
_MARKUP_RE = re.compile(
    r"<(/?)([a-zA-Z][a-zA-Z0-9:-]*)((?:\"[^\"]*\"|'[^']*'|[^<>\"'])*)>"
    r"|<(?=[a-zA-Z/!?])"
)
# Attributes may be separated by whitespace, ``/`` or nothing at all after a quoted value.
_ATTR_RE = re.compile(r"([^\s\"'<>/=]+)(?:\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s\"'>]+))?")

_URL_ATTRS = {"href", "src", "action", "formaction", "xlink:href", "background", "poster", "srcset"}
_SAFE_DATA_IMAGE_RE = re.compile(r"^data:image/(?:png|jpe?g|gif|webp|bmp);")
_CONTROL_RE = re.compile(r"[\s\x00-\x1f]+")

_DATA_URI_RE = re.compile(r"data:[a-zA-Z0-9.+-]+/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=\s]*")
_PARAGRAPH_END_RE = re.compile(r"</(?:p|div|h[1-6]|blockquote|ul|ol|table)\s*>", re.IGNORECASE)
_LINE_END_RE = re.compile(r"<br\s*/?>|</(?:li|tr)\s*>", re.IGNORECASE)

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_BOLD_STAR_RE = re.compile(r"\*\*([\s\S]+?)\*\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__([\s\S]+?)__")
_ITALIC_STAR_RE = re.compile(r"(?<!\S)\*([^*\s][^*]*?)\*(?!\S)")
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\S)_([^_\s][^_]*?)_(?!\S)")
_URL_RE = re.compile(r"(https?://[^\s<]+?)(?=[.,;:!?)]*(?:\s|<|$))")


def looks_like_html(text: str) -> bool:
    """True if `text` contains an HTML tag-like substring."""
    return bool(text) and _HTML_TAG_RE.search(text) is not None


def format_hint(delta: str) -> str:
    """Per-delta content format hint sent alongside streamed text."""
    return FORMAT_HTML if looks_like_html(delta) else FORMAT_MARKDOWN


def escape_html(text: str) -> str:
    return html.escape(text or "", quote=True)


def _is_unsafe_url(attr: str, value: str) -> bool:
    normalized = _CONTROL_RE.sub("", html.unescape(value)).lower()
    if normalized.startswith(("javascript:", "vbscript:")):
        return True
    if normalized.startswith("data:"):
        return not (attr == "src" and _SAFE_DATA_IMAGE_RE.match(normalized))
    return False


def _is_allowed_attr(match: re.Match) -> bool:
    attr = match.group(1).lower()
    value = (match.group(2) or "").strip("\"'")
    if attr.startswith("on"):
        return False
    if attr in _URL_ATTRS and _is_unsafe_url(attr, value):
        return False
    if attr == "style":
        lowered = _CONTROL_RE.sub("", html.unescape(value)).lower()
        if "expression(" in lowered or "javascript:" in lowered or "url(" in lowered:
            return False
    return True


def _clean_tag(match: re.Match) -> str:
    name = match.group(2)
    if name is None:
        return "&lt;"
    if match.group(1):
        return f"</{name}>"
    body = match.group(3)
    attrs = []
    end = 0
    for attr in _ATTR_RE.finditer(body):
        end = attr.end()
        if _is_allowed_attr(attr):
            attrs.append(" " + attr.group(0))
    closer = "/>" if body[end:].strip().endswith("/") else ">"
    return f"<{name}{''.join(attrs)}{closer}"


def _sanitize_pass(markup: str) -> str:
    markup = _DANGEROUS_BLOCK_RE.sub("", markup)
    markup = _DANGEROUS_TAG_RE.sub("", markup)
    return _MARKUP_RE.sub(_clean_tag, markup)


def sanitize_html(markup: str) -> str:
    """
    Strip dangerous elements, event handlers and script-capable URLs.

    Parameters
    ----------
    markup : str
        HTML fragment.

    Returns
    -------
    str
        The fragment with only the unsafe parts removed. Inline screenshots
        (``<img src="data:image/png;base64,...">``) survive.

    Notes
    -----
    Passes repeat until nothing changes, so nested tricks such as
    ``<scr<script></script>ipt>`` cannot reassemble a removed tag, and a
    second call is always a no-op.
    """
    if not markup:
        return ""
    previous = None
    while previous != markup:
        previous = markup
        markup = _sanitize_pass(markup)
    return markup


def _render_inline(escaped: str) -> str:
    escaped = _BOLD_STAR_RE.sub(r"<strong>\1</strong>", escaped)
    escaped = _BOLD_UNDERSCORE_RE.sub(r"<strong>\1</strong>", escaped)
    escaped = _ITALIC_STAR_RE.sub(r"<em>\1</em>", escaped)
    escaped = _ITALIC_UNDERSCORE_RE.sub(r"<em>\1</em>", escaped)
    return _URL_RE.sub(r'<a href="\1" target="_blank" rel="noopener noreferrer">\1</a>', escaped)


def markdown_to_html(text: str) -> str:
    """
    Convert a minimal Markdown dialect to HTML.

    Supported: ``#``..``######`` headings, ``---``/``***`` rules, ``**``/``__``
    bold, single ``*``/``_`` italic bounded by whitespace, bare http(s) URLs.
    Lines of one paragraph are joined with ``<br>``; blank lines start a new
    paragraph. Every line is escaped before any tag is introduced.
    """
    if not text:
        return ""
    out = []
    paragraph = []

    def flush():
        if paragraph:
            out.append(f"<p>{_render_inline('<br>'.join(paragraph))}</p>")
            paragraph.clear()

    for raw_line in re.split(r"\r?\n", text):
        stripped = raw_line.strip()
        if stripped in ("---", "***"):
            flush()
            out.append("<hr/>")
            continue
        heading = _HEADING_RE.match(stripped)
        if heading:
            flush()
            level = len(heading.group(1))
            out.append(f"<h{level}>{_render_inline(escape_html(heading.group(2)))}</h{level}>")
            continue
        if not stripped:
            flush()
            continue
        paragraph.append(escape_html(raw_line))
    flush()
    return "".join(out)


def render(text: str) -> str:
    """Safe HTML for an assistant turn, used at persistence and preview time."""
    if not text:
        return ""
    if looks_like_html(text):
        return sanitize_html(text)
    return markdown_to_html(text)


def render_plain(text: str) -> str:
    return re.sub(r"\r?\n", "<br>", escape_html(text))


def strip_markup(text: str) -> str:
    """
    Reduce stored or streamed content to plain text.

    Removes base64 data URIs, dangerous blocks and tags, unescapes entities and
    collapses runs of blank space. Paragraph-level boundaries become a blank
    line; line breaks and list items become a single newline.
    """
    if not text:
        return ""
    s = _DATA_URI_RE.sub(" ", text)
    s = _DANGEROUS_BLOCK_RE.sub(" ", s)
    s = _PARAGRAPH_END_RE.sub("\n\n", s)
    s = _LINE_END_RE.sub("\n", s)
    s = re.sub(r"<[^>]+>", " ", s)
    s = html.unescape(s)
    s = re.sub(r"[ \t\f\v\r]+", " ", s)
    s = re.sub(r" *\n *", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()
