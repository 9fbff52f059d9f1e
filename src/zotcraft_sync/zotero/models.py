"""Bibliographic records as read from a Zotero library."""

from dataclasses import dataclass, field


@dataclass
class Item:
    """A top-level Zotero item (not a note or attachment)."""

    key: str
    library_id: int = 1
    item_type: str = "document"
    title: str = ""
    creators: list[str] = field(default_factory=list)
    date: str = ""
    date_added: str = ""
    publication_title: str = ""
    publisher: str = ""
    institution: str = ""
    archive: str = ""
    repository: str = ""
    url: str = ""
    doi: str = ""
    abstract: str = ""
    extra: str = ""
    tags: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    collections: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Collection:
    key: str
    name: str
    parent_key: str | None = None


# Zotero API field name -> Item attribute
API_FIELD_MAP: dict[str, str] = {
    "itemType": "item_type",
    "title": "title",
    "date": "date",
    "dateAdded": "date_added",
    "publicationTitle": "publication_title",
    "publisher": "publisher",
    "institution": "institution",
    "archive": "archive",
    "repository": "repository",
    "url": "url",
    "DOI": "doi",
    "abstractNote": "abstract",
    "extra": "extra",
}


def creator_display_name(creator: dict) -> str:
    """Single-field name, else "given family"."""
    if creator.get("name"):
        return creator["name"]
    return f"{creator.get('firstName') or ''} {creator.get('lastName') or ''}".strip()


def item_from_api(data: dict, library_id: int = 1) -> Item:
    """Build an Item from the ``data`` object of a Zotero web API item."""
    item = Item(key=data["key"], library_id=library_id)
    for api_name, attr in API_FIELD_MAP.items():
        value = data.get(api_name)
        if value:
            setattr(item, attr, str(value))
    item.creators = [
        name for name in (creator_display_name(c) for c in data.get("creators", [])) if name
    ]
    item.tags = [t["tag"] for t in data.get("tags", []) if t.get("tag")]
    item.collections = list(data.get("collections", []))
    return item
