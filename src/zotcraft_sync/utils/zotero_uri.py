import re

ZOTERO_LINK_PREFIX = "zotero://select/library/items/"

_ZOTERO_LINK_RE = re.compile(r"zotero://select/library/items/([A-Z0-9]+)")

# Web URIs like https://www.zotero.org/users/12345/items/ABCD1234
_ZOTERO_WEB_URI_RE = re.compile(
    r"https?://(?:www\.)?zotero\.org/(?:users|groups)/\d+/items/([A-Z0-9]+)"
)


def build_zotero_link(item_key: str) -> str:
    """The identity token stored on Craft records for a Zotero item."""
    return f"{ZOTERO_LINK_PREFIX}{item_key}"


def parse_zotero_link(value: str) -> str | None:
    """Extract the item key from a zotero:// link or a zotero.org web URI.

    Accepts links embedded in surrounding text.
    """
    if not value:
        return None
    m = _ZOTERO_LINK_RE.search(value) or _ZOTERO_WEB_URI_RE.search(value)
    return m.group(1) if m else None


def find_zotero_link(value: object) -> str | None:
    """Find the first zotero:// link in a property value of unknown shape."""
    if isinstance(value, str):
        return value if value.startswith(ZOTERO_LINK_PREFIX) else None
    if isinstance(value, dict):
        value = list(value.values())
    if isinstance(value, list):
        for entry in value:
            found = find_zotero_link(entry)
            if found:
                return found
    return None
