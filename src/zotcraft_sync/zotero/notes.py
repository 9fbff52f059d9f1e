"""Convert Zotero note HTML into plain markdown paragraphs."""

import re
from html import unescape

_BLOCK_RE = re.compile(r"<(h1|h2|h3|p)[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_CITATION_RE = re.compile(
    r"<span[^>]*class=[\"']citation[\"'][^>]*data-citation=[\"'][^\"']+[\"'][^>]*>(.*?)</span>",
    re.IGNORECASE | re.DOTALL,
)

HEADING_PREFIX = {"h1": "### ", "h2": "#### ", "h3": "##### "}


def strip_html(text: str) -> str:
    return _TAG_RE.sub(" ", text)


def collapse_whitespace(text: str) -> str:
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n[ \t]+", "\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"\n{2,}", "\n\n", text)
    return text.strip()


def normalize_citation_spacing(text: str) -> str:
    return re.sub(r"\s+\)", ")", re.sub(r"\(\s+", "(", text))


def _to_text(fragment: str) -> str:
    # Entities are decoded after tags are gone so "&lt;" survives as text.
    return normalize_citation_spacing(
        collapse_whitespace(unescape(strip_html(fragment)).replace("\xa0", " "))
    )


def replace_citation_spans(html: str) -> str:
    """Replace Zotero citation spans with their rendered text."""
    return _CITATION_RE.sub(lambda m: _to_text(m.group(1)), html)


def extract_note_paragraphs(note: str) -> list[str]:
    """Split a note into paragraphs, rendering h1-h3 as markdown headings.

    Notes without block-level markup fall back to splitting on blank lines.
    """
    if not note:
        return []
    normalized = note.replace("\r\n", "\n")

    blocks = []
    for match in _BLOCK_RE.finditer(normalized):
        tag = match.group(1).lower()
        raw = _BR_RE.sub("\n", match.group(2))
        text = _to_text(replace_citation_spans(raw))
        if not text:
            continue
        blocks.append(HEADING_PREFIX.get(tag, "") + text)

    if blocks:
        return blocks

    fallback = _to_text(replace_citation_spans(normalized))
    if not fallback:
        return []
    return [part.strip() for part in re.split(r"\n{2,}", fallback) if part.strip()]
