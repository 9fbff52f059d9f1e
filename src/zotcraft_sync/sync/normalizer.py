"""Turn a Zotero item into the schema-independent attributes we sync."""

import re
from dataclasses import dataclass, field

from dateutil import parser as date_parser

from zotcraft_sync.utils.zotero_uri import build_zotero_link
from zotcraft_sync.zotero.models import Item

UNKNOWN_AUTHOR = "Unknown Author"
UNTITLED = "Untitled"
VENUE_SEPARATOR = " · "

# Item types whose venue is the publisher rather than a journal
BOOK_LIKE_TYPES = {"book", "booksection", "bookchapter", "bookpart", "preprint"}

_YEAR_RE = re.compile(r"\d{4}")
_ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_CITATION_KEY_RE = re.compile(r"^citation\s*key\s*:\s*(.+)$", re.IGNORECASE)


@dataclass
class CanonicalAttributes:
    title: str
    authors: str
    year: str
    venue: str
    url: str
    zotero_link: str
    date_added: str
    item_type: str
    abstract: str
    tags: list[str] = field(default_factory=list)
    citation_key: str | None = None


def format_authors(creators: list[str]) -> str:
    names = [c.strip() for c in creators if c and c.strip()]
    if not names:
        return UNKNOWN_AUTHOR
    return ", ".join(names)


def extract_year(date: str) -> str:
    """First 4-digit run of the date, else the date unchanged."""
    if not date:
        return ""
    match = _YEAR_RE.search(date)
    return match.group(0) if match else date


def format_item_type(item_type: str) -> str:
    """``journalArticle`` -> ``Journal Article``."""
    if not item_type:
        return ""
    spaced = re.sub(r"([A-Z])", r" \1", item_type).strip()
    return spaced[:1].upper() + spaced[1:]


def format_venue(item: Item) -> str:
    publication = item.publication_title or ""
    if item.item_type.lower() not in BOOK_LIKE_TYPES:
        return publication

    publisher = item.publisher or item.institution or item.archive or item.repository or ""
    if publication and publisher:
        return f"{publication}{VENUE_SEPARATOR}{publisher}"
    return publication or publisher


def normalize_date_only(value: str) -> str:
    """Reduce a timestamp to ``YYYY-MM-DD``; empty when it cannot be parsed."""
    if not value:
        return ""
    match = _ISO_DATE_RE.search(value)
    if match:
        return match.group(0)
    try:
        return date_parser.parse(value).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        return ""


def extract_citation_key(extra: str) -> str | None:
    """Find a ``Citation Key: <value>`` line in the extra field."""
    if not extra:
        return None
    for line in extra.splitlines():
        match = _CITATION_KEY_RE.match(line.strip())
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


class CitationKeyCache:
    """Per-session memo of citation keys by item key."""

    def __init__(self) -> None:
        self._keys: dict[str, str] = {}

    def resolve(self, item: Item) -> str | None:
        cached = self._keys.get(item.key)
        if cached:
            return cached
        key = extract_citation_key(item.extra)
        if key:
            self._keys[item.key] = key
        return key


def normalize_item(
    item: Item, citation_keys: CitationKeyCache | None = None
) -> CanonicalAttributes:
    if citation_keys is not None:
        citation_key = citation_keys.resolve(item)
    else:
        citation_key = extract_citation_key(item.extra)

    return CanonicalAttributes(
        title=(item.title or "").strip() or UNTITLED,
        authors=format_authors(item.creators),
        year=extract_year(item.date),
        venue=format_venue(item),
        url=item.url or item.doi or "",
        zotero_link=build_zotero_link(item.key),
        date_added=normalize_date_only(item.date_added),
        item_type=format_item_type(item.item_type),
        abstract=item.abstract or "",
        tags=[t.strip() for t in item.tags if t and t.strip()],
        citation_key=citation_key,
    )
