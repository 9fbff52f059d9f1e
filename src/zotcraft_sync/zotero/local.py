"""Read items from a local zotero.sqlite database.

The database is copied to a temp file before reading so a running Zotero
instance keeps its lock. Parsed items are cached in memory per database mtime
and, when a cache period is configured, in a JSON file that survives restarts.
"""

import json
import logging
import shutil
import tempfile
import time
from dataclasses import asdict
from pathlib import Path

from rapidfuzz import fuzz
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

from zotcraft_sync.sync.normalizer import extract_citation_key
from zotcraft_sync.zotero.models import API_FIELD_MAP, Collection, Item

logger = logging.getLogger(__name__)

CACHE_VERSION = 1
CACHE_FILENAME = "zotero-cache.json"

# Minimum rapidfuzz partial_ratio for a token to count as a match
MATCH_THRESHOLD = 90

SEARCH_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("title", 10),
    ("abstract", 5),
    ("tags", 15),
    ("date", 3),
    ("creators", 4),
    ("doi", 10),
    ("citation_key", 12),
)

EXCLUDED_TYPES = (
    "artwork", "attachment", "audioRecording", "bill", "computerProgram",
    "dictionaryEntry", "email", "film", "forumPost", "hearing",
    "instantMessage", "interview", "map", "note", "podcast",
    "radioBroadcast", "statute", "tvBroadcast", "videoRecording", "annotation",
)

ITEMS_SQL = f"""
SELECT  items.itemID AS id,
        items.dateAdded AS added,
        items.key AS key,
        items.libraryID AS library,
        itemTypes.typeName AS type
    FROM items
    LEFT JOIN itemTypes
        ON items.itemTypeID = itemTypes.itemTypeID
    LEFT JOIN deletedItems
        ON items.itemID = deletedItems.itemID
WHERE itemTypes.typeName NOT IN ({", ".join(f"'{t}'" for t in EXCLUDED_TYPES)})
AND deletedItems.dateDeleted IS NULL
"""

TAGS_SQL = """
SELECT tags.name AS name
    FROM tags
    JOIN itemTags
        ON tags.tagID = itemTags.tagID
WHERE itemTags.itemID = :id
"""

METADATA_SQL = """
SELECT  fields.fieldName AS name,
        itemDataValues.value AS value
    FROM itemData
    JOIN fields
        ON itemData.fieldID = fields.fieldID
    JOIN itemDataValues
        ON itemData.valueID = itemDataValues.valueID
WHERE itemData.itemID = :id
"""

CREATORS_SQL = """
SELECT  creators.firstName AS given,
        creators.lastName AS family
    FROM creators
    JOIN itemCreators
        ON creators.creatorID = itemCreators.creatorID
WHERE itemCreators.itemID = :id
ORDER BY itemCreators.orderIndex ASC
"""

COLLECTIONS_SQL = """
SELECT collections.key AS key
    FROM collections
    JOIN collectionItems
        ON collections.collectionID = collectionItems.collectionID
WHERE collectionItems.itemID = :id
"""

NOTES_SQL = """
SELECT itemNotes.note AS note
  FROM itemNotes
WHERE itemNotes.parentItemID = :id
"""

# Annotations hang off the PDF attachment, not the item itself
ANNOTATIONS_SQL = """
SELECT itemAnnotations.text AS text,
       itemAnnotations.comment AS comment,
       itemAnnotations.pageLabel AS pageLabel
  FROM itemAnnotations
 WHERE itemAnnotations.parentItemID IN (
    SELECT itemAttachments.itemID
      FROM itemAttachments
     WHERE itemAttachments.parentItemID = :id
 )
"""

ALL_COLLECTIONS_SQL = """
SELECT  collections.collectionName AS name,
        collections.key AS key,
        p.key AS parentKey
    FROM collections
    LEFT JOIN collections p
        ON p.collectionID = collections.parentCollectionID
"""


def resolve_db_path(value: str | None) -> Path:
    return Path((value or "").strip() or "~/Zotero/zotero.sqlite").expanduser()


def parse_query(query: str) -> tuple[list[str], list[str]]:
    """Split a query into plain tokens and ``.tag`` filters. ``+`` means space."""
    terms = []
    tags = []
    for part in query.split():
        if part.startswith("."):
            if len(part) > 1:
                tags.append(part[1:].replace("+", " "))
        else:
            terms.append(part.replace("+", " "))
    return terms, tags


def _field_values(item: Item, field: str) -> list[str]:
    if field == "citation_key":
        key = extract_citation_key(item.extra)
        return [key] if key else []
    value = getattr(item, field)
    if isinstance(value, list):
        return value
    return [value] if value else []


def _best_match(token: str, values: list[str]) -> float:
    token = token.lower()
    return max((fuzz.partial_ratio(token, v.lower()) for v in values), default=0.0)


def score_item(item: Item, terms: list[str], tags: list[str]) -> float | None:
    """Weighted fuzzy score, or None when a term or tag filter does not match."""
    for tag in tags:
        if _best_match(tag, item.tags) < MATCH_THRESHOLD:
            return None

    total = 0.0
    for term in terms:
        term_score = 0.0
        for field, weight in SEARCH_WEIGHTS:
            ratio = _best_match(term, _field_values(item, field))
            if ratio >= MATCH_THRESHOLD:
                term_score = max(term_score, weight * ratio / 100)
        if term_score == 0:
            return None
        total += term_score
    return total


class LocalZoteroSource:
    def __init__(
        self,
        db_path: str | Path,
        cache_dir: str | Path,
        cache_period_minutes: int = 0,
    ) -> None:
        self._db_path = resolve_db_path(str(db_path))
        self._cache_dir = Path(cache_dir).expanduser()
        self._cache_period = cache_period_minutes
        self._loaded_mtime: float | None = None
        self._items: list[Item] = []
        self._collections: list[Collection] = []

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def _cache_file(self) -> Path:
        return self._cache_dir / CACHE_FILENAME

    async def close(self) -> None:
        pass

    async def ensure_cache(self) -> None:
        """Reload the library when the database file changed."""
        mtime = self._db_path.stat().st_mtime
        if self._loaded_mtime == mtime:
            return

        self._items = []
        self._collections = []

        if self._cache_period > 0 and self._cache_is_fresh(mtime):
            try:
                self._read_cache()
                self._loaded_mtime = mtime
                return
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.debug("Ignoring unreadable cache %s: %s", self._cache_file, exc)

        await self._load_from_db()
        self._loaded_mtime = mtime
        if self._cache_period > 0:
            try:
                self._write_cache()
            except OSError as exc:
                logger.warning("Could not write cache %s: %s", self._cache_file, exc)

    def _cache_is_fresh(self, db_mtime: float) -> bool:
        try:
            cache_mtime = self._cache_file.stat().st_mtime
        except OSError:
            return False
        fresh = time.time() - cache_mtime < self._cache_period * 60
        return fresh and db_mtime <= cache_mtime

    def _read_cache(self) -> None:
        cached = json.loads(self._cache_file.read_text(encoding="utf-8"))
        if cached["version"] != CACHE_VERSION or cached["zoteroPath"] != str(self._db_path):
            raise ValueError("cache belongs to another version or database")
        self._items = [Item(**entry) for entry in cached["items"]]
        self._collections = [Collection(**entry) for entry in cached["collections"]]
        logger.debug("Loaded %d items from cache", len(self._items))

    def _write_cache(self) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": CACHE_VERSION,
            "zoteroPath": str(self._db_path),
            "collections": [asdict(c) for c in self._collections],
            "items": [asdict(i) for i in self._items],
        }
        self._cache_file.write_text(json.dumps(payload), encoding="utf-8")

    async def _load_from_db(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            copy_path = Path(tmp_dir) / "zotero.sqlite"
            shutil.copy2(self._db_path, copy_path)
            engine = create_async_engine(f"sqlite+aiosqlite:///{copy_path}")
            try:
                async with engine.connect() as conn:
                    self._items = await self._read_items(conn)
                    self._collections = await self._read_collections(conn)
            finally:
                await engine.dispose()

        self._items.sort(key=lambda i: i.date_added, reverse=True)
        logger.info(
            "Loaded %d items and %d collections from %s",
            len(self._items), len(self._collections), self._db_path,
        )

    async def _read_items(self, conn: AsyncConnection) -> list[Item]:
        items = []
        rows = (await conn.execute(text(ITEMS_SQL))).mappings().all()
        for row in rows:
            item_id = row["id"]
            item = Item(
                key=row["key"],
                library_id=row["library"],
                item_type=row["type"] or "document",
                date_added=row["added"] or "",
            )

            result = await conn.execute(text(METADATA_SQL), {"id": item_id})
            for meta in result.mappings():
                attr = API_FIELD_MAP.get(meta["name"])
                if attr and attr not in ("item_type", "date_added"):
                    setattr(item, attr, meta["value"] or "")

            result = await conn.execute(text(CREATORS_SQL), {"id": item_id})
            item.creators = [
                name
                for name in (
                    f"{c['given'] or ''} {c['family'] or ''}".strip()
                    for c in result.mappings()
                )
                if name
            ]

            result = await conn.execute(text(TAGS_SQL), {"id": item_id})
            item.tags = [t["name"] for t in result.mappings() if t["name"]]

            result = await conn.execute(text(COLLECTIONS_SQL), {"id": item_id})
            item.collections = [c["key"] for c in result.mappings() if c["key"]]

            result = await conn.execute(text(NOTES_SQL), {"id": item_id})
            item.notes = [n["note"].strip() for n in result.mappings() if (n["note"] or "").strip()]
            item.notes.extend(await self._read_annotations(conn, item_id))

            items.append(item)
        return items

    async def _read_annotations(self, conn: AsyncConnection, item_id: int) -> list[str]:
        try:
            result = await conn.execute(text(ANNOTATIONS_SQL), {"id": item_id})
        except OperationalError:
            # Databases from before Zotero 6 have no annotation tables
            return []
        annotations = []
        for row in result.mappings():
            parts = [
                row["text"],
                row["comment"],
                f"Page {row['pageLabel']}" if row["pageLabel"] else "",
            ]
            joined = " - ".join(p for p in parts if p).strip()
            if joined:
                annotations.append(joined)
        return annotations

    async def _read_collections(self, conn: AsyncConnection) -> list[Collection]:
        result = await conn.execute(text(ALL_COLLECTIONS_SQL))
        return [
            Collection(key=row["key"], name=row["name"], parent_key=row["parentKey"] or None)
            for row in result.mappings()
            if row["key"] and row["name"]
        ]

    def _filtered(self, collection_key: str | None) -> list[Item]:
        if not collection_key:
            return self._items
        return [i for i in self._items if collection_key in i.collections]

    async def list_recent(
        self, limit: int, collection_key: str | None = None
    ) -> list[Item]:
        await self.ensure_cache()
        return self._filtered(collection_key)[:limit]

    async def search(
        self, query: str, limit: int, collection_key: str | None = None
    ) -> list[Item]:
        await self.ensure_cache()
        items = self._filtered(collection_key)
        terms, tags = parse_query(query)
        if not terms and not tags:
            return items[:limit]

        scored = []
        for item in items:
            score = score_item(item, terms, tags)
            if score is not None:
                scored.append((score, item))
        # sort is stable, so equal scores keep newest-first order
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in scored[:limit]]

    async def list_collections(self) -> list[Collection]:
        await self.ensure_cache()
        return list(self._collections)

    async def fetch_child_notes(self, item_key: str) -> list[str]:
        await self.ensure_cache()
        for item in self._items:
            if item.key == item_key:
                return list(item.notes)
        return []
