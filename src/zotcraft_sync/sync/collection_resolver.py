"""Resolve Zotero collection display paths to keys for filtering."""

import logging

from zotcraft_sync.zotero.models import Collection
from zotcraft_sync.zotero.source import BibliographicSource

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " / "


def format_collection_paths(collections: list[Collection]) -> list[Collection]:
    """Rename each collection to its root-to-node path, sorted by path."""
    by_key = {c.key: c for c in collections}

    def path(collection: Collection) -> str:
        parts = [collection.name]
        parent = by_key.get(collection.parent_key) if collection.parent_key else None
        while parent is not None:
            parts.append(parent.name)
            parent = by_key.get(parent.parent_key) if parent.parent_key else None
        return PATH_SEPARATOR.join(reversed(parts))

    formatted = [Collection(key=c.key, name=path(c), parent_key=c.parent_key) for c in collections]
    return sorted(formatted, key=lambda c: c.name.lower())


class CollectionResolver:
    def __init__(self, source: BibliographicSource) -> None:
        self._source = source
        self._collections: list[Collection] | None = None
        self.filtering_enabled = True
        self.warning: str | None = None

    async def ensure_cache(self) -> list[Collection]:
        """Load collections once. A failure disables collection filtering."""
        if self._collections is not None:
            return self._collections
        try:
            raw = await self._source.list_collections()
        except Exception as exc:
            self._collections = []
            self.filtering_enabled = False
            self.warning = f"Failed to load Zotero collections; collection filtering disabled. {exc}"
            logger.warning(self.warning)
            return self._collections

        self._collections = format_collection_paths(raw)
        logger.info("Cached %d Zotero collections", len(self._collections))
        return self._collections

    async def resolve(self, value: str | None) -> str | None:
        """Map a collection key or display path to a key.

        Returns None for "all", for unknown names, and when filtering is off.
        """
        if not value or value.strip().lower() == "all":
            return None
        collections = await self.ensure_cache()
        if not self.filtering_enabled:
            return None

        wanted = value.strip()
        for collection in collections:
            if collection.key == wanted:
                return collection.key
        for collection in collections:
            if collection.name.lower() == wanted.lower():
                return collection.key
        logger.warning("Collection '%s' not found, searching all items", wanted)
        return None
