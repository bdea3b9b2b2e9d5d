"""HTML metadata extraction and HTML→Markdown conversion.

This is a best-effort text extractor, not a browser-grade parser.  The
Markdown conversion is an ordered pipeline of independent regex rewrites;
each pass is a pure ``str -> str`` function and the order matters (scripts
and comments go first, remaining tags are stripped last).

All functions in this module are pure (no I/O).
"""

from __future__ import annotations

import re
from typing import Callable

from url_context.scraper.models import HtmlMetadata

# ---------------------------------------------------------------------------
# Entity decoding
# ---------------------------------------------------------------------------

#: Applied in order; ``&amp;`` first so ``&amp;lt;`` decodes to ``<``.
_CONTENT_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&nbsp;", " "),
    ("&mdash;", "—"),
    ("&ndash;", "–"),
    ("&hellip;", "…"),
)

_TEXT_ENTITIES = _CONTENT_ENTITIES[:6]


def _decode_entities(text: str, entities: tuple[tuple[str, str], ...]) -> str:
    for entity, replacement in entities:
        text = text.replace(entity, replacement)
    return text


def clean_text(text: str) -> str:
    """Decode common entities and collapse all whitespace to single spaces.

    Used for short strings such as titles and headings.
    """
    text = _decode_entities(text, _TEXT_ENTITIES)
    return re.sub(r"\s+", " ", text).strip()


def clean_content(content: str) -> str:
    """Normalize a body of text.

    Decodes the common HTML entities, converts CRLF/CR to LF, expands tabs
    to two spaces, collapses runs of spaces, strips spaces at line edges,
    limits blank runs to a single empty line and trims the result.
    """
    content = _decode_entities(content, _CONTENT_ENTITIES)
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    content = content.replace("\t", "  ")
    content = re.sub(r" +", " ", content)
    content = re.sub(r"\n +", "\n", content)
    content = re.sub(r" +\n", "\n", content)
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


# ---------------------------------------------------------------------------
# Metadata extraction
# ---------------------------------------------------------------------------

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(
    r"""<meta[^>]+name=["']description["'][^>]+content=["']([^"']+)["']""",
    re.IGNORECASE,
)
_HTML_LANG_RE = re.compile(r"""<html[^>]+lang=["']([^"']+)["']""", re.IGNORECASE)
_CONTENT_LANGUAGE_RE = re.compile(
    r"""<meta[^>]+http-equiv=["']content-language["'][^>]+content=["']([^"']+)["']""",
    re.IGNORECASE,
)
_CANONICAL_RE = re.compile(
    r"""<link[^>]+rel=["']canonical["'][^>]+href=["']([^"']+)["']""",
    re.IGNORECASE,
)
_OG_IMAGE_RE = re.compile(
    r"""<meta[^>]+property=["']og:image["'][^>]+content=["']([^"']+)["']""",
    re.IGNORECASE,
)
_FAVICON_RE = re.compile(
    r"""<link[^>]+rel=["'](?:icon|shortcut icon)["'][^>]+href=["']([^"']+)["']""",
    re.IGNORECASE,
)


def _first(pattern: re.Pattern[str], html: str) -> str | None:
    match = pattern.search(html)
    if match is None:
        return None
    return clean_text(match.group(1)) or None


def extract_html_metadata(html: str) -> HtmlMetadata:
    """Extract title, description, language and link metadata from ``html``.

    Each field takes the first match only.  Attribute order matters: the
    patterns expect ``name``/``property``/``rel`` before ``content``/``href``.

    Args:
        html: Raw (possibly truncated) HTML.

    Returns:
        An :class:`HtmlMetadata`; missing fields are ``None``.
    """
    return HtmlMetadata(
        title=_first(_TITLE_RE, html),
        description=_first(_DESCRIPTION_RE, html),
        language=_first(_HTML_LANG_RE, html) or _first(_CONTENT_LANGUAGE_RE, html),
        canonical_url=_first(_CANONICAL_RE, html),
        og_image=_first(_OG_IMAGE_RE, html),
        favicon=_first(_FAVICON_RE, html),
    )


# ---------------------------------------------------------------------------
# HTML → Markdown passes
# ---------------------------------------------------------------------------

_I = re.IGNORECASE
_IS = re.IGNORECASE | re.DOTALL

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", _IS)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HEADING_RE = re.compile(r"<h([1-6])\b[^>]*>(.*?)</h\1>", _I)
_PARAGRAPH_RE = re.compile(r"<p\b[^>]*>(.*?)</p>", _I)
_BR_RE = re.compile(r"<br\s*/?>", _I)
_UL_RE = re.compile(r"<ul\b[^>]*>(.*?)</ul>", _IS)
_OL_RE = re.compile(r"<ol\b[^>]*>(.*?)</ol>", _IS)
_LI_RE = re.compile(r"<li\b[^>]*>(.*?)</li>", _I)
_LINK_RE = re.compile(r"""<a\b[^>]+href=["']([^"']+)["'][^>]*>(.*?)</a>""", _I)
_STRONG_RE = re.compile(r"<(strong|b)\b[^>]*>(.*?)</\1>", _I)
_EM_RE = re.compile(r"<(em|i)\b[^>]*>(.*?)</\1>", _I)
_CODE_RE = re.compile(r"<code\b[^>]*>(.*?)</code>", _I)
_PRE_RE = re.compile(r"<pre\b[^>]*>(.*?)</pre>", _IS)
_BLOCKQUOTE_RE = re.compile(r"<blockquote\b[^>]*>(.*?)</blockquote>", _IS)
_TAG_RE = re.compile(r"<[^>]+>")


def _strip_scripts_and_comments(html: str) -> str:
    html = _SCRIPT_STYLE_RE.sub("", html)
    return _COMMENT_RE.sub("", html)


def _convert_headings(html: str) -> str:
    def heading(match: re.Match[str]) -> str:
        hashes = "#" * int(match.group(1))
        return f"\n\n{hashes} {clean_text(match.group(2))}\n\n"

    return _HEADING_RE.sub(heading, html)


def _convert_paragraphs(html: str) -> str:
    html = _PARAGRAPH_RE.sub(r"\n\n\1\n\n", html)
    return _BR_RE.sub("\n", html)


def _convert_lists(html: str) -> str:
    def unordered(match: re.Match[str]) -> str:
        return _LI_RE.sub(r"- \1\n", match.group(1))

    def ordered(match: re.Match[str]) -> str:
        counter = 0

        def item(li: re.Match[str]) -> str:
            nonlocal counter
            counter += 1
            return f"{counter}. {li.group(1)}\n"

        return _LI_RE.sub(item, match.group(1))

    html = _UL_RE.sub(unordered, html)
    return _OL_RE.sub(ordered, html)


def _convert_inline(html: str) -> str:
    html = _LINK_RE.sub(r"[\2](\1)", html)
    html = _STRONG_RE.sub(r"**\2**", html)
    html = _EM_RE.sub(r"*\2*", html)
    return _CODE_RE.sub(r"`\1`", html)


def _convert_blocks(html: str) -> str:
    html = _PRE_RE.sub(lambda m: f"\n```\n{m.group(1)}\n```\n", html)

    def blockquote(match: re.Match[str]) -> str:
        return "\n".join(f"> {line}" for line in match.group(1).split("\n"))

    return _BLOCKQUOTE_RE.sub(blockquote, html)


def _strip_tags(html: str) -> str:
    return _TAG_RE.sub("", html)


_MARKDOWN_PASSES: tuple[Callable[[str], str], ...] = (
    _strip_scripts_and_comments,
    _convert_headings,
    _convert_paragraphs,
    _convert_lists,
    _convert_inline,
    _convert_blocks,
    _strip_tags,
    clean_content,
)


def html_to_markdown(html: str) -> str:
    """Convert ``html`` to Markdown by running every rewrite pass in order.

    Running it again on its own output is a no-op, except where escaped
    markup such as ``&lt;b&gt;`` decoded to a literal tag: entities are
    decoded after tags are stripped, so a second run strips that tag.

    Args:
        html: Raw HTML string (may be partial or malformed).

    Returns:
        Cleaned Markdown text.
    """
    for rewrite in _MARKDOWN_PASSES:
        html = rewrite(html)
    return html
