"""HTTP endpoints for searching Zotero and syncing into Craft."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from zotcraft_sync.api.models import (
    CollectionModel,
    ItemSummary,
    OutcomeModel,
    SyncRequest,
    SyncResponse,
)
from zotcraft_sync.config import Settings
from zotcraft_sync.sync.collection_resolver import CollectionResolver
from zotcraft_sync.sync.engine import SyncEngine, SyncStatus
from zotcraft_sync.sync.normalizer import normalize_item
from zotcraft_sync.zotero.client import ZoteroAPIError
from zotcraft_sync.zotero.models import Item
from zotcraft_sync.zotero.source import BibliographicSource

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected at app startup
_settings: Settings | None = None
_source: BibliographicSource | None = None
_engine: SyncEngine | None = None
_collections: CollectionResolver | None = None


def configure(
    settings: Settings,
    source: BibliographicSource,
    engine: SyncEngine,
    collections: CollectionResolver,
) -> None:
    global _settings, _source, _engine, _collections
    _settings = settings
    _source = source
    _engine = engine
    _collections = collections


def _subtitle(item: Item) -> str:
    attrs = normalize_item(item)
    return " · ".join(p for p in (attrs.authors, attrs.year, attrs.venue) if p)


async def _find_items(query: str, limit: int | None, collection: str | None) -> list[Item]:
    limit = limit or _settings.max_items
    collection_key = await _collections.resolve(collection or _settings.zotero_collection_id)
    try:
        if query.strip():
            return await _source.search(query, limit, collection_key)
        return await _source.list_recent(limit, collection_key)
    except (ZoteroAPIError, OSError) as exc:
        logger.warning("Zotero search failed: %s", exc)
        raise HTTPException(status_code=502, detail=f"Zotero search failed: {exc}")


@router.get("/items", response_model=list[ItemSummary])
async def search_items(q: str = "", limit: int | None = None, collection: str | None = None):
    """Search Zotero; each result reports the Craft id it is synced to."""
    items = await _find_items(q, limit, collection)

    try:
        await _engine.load()
    except Exception as exc:
        logger.warning("Failed to read existing Craft items; continuing without markers: %s", exc)

    return [
        ItemSummary(
            key=item.key,
            title=item.title or "Untitled",
            subtitle=_subtitle(item),
            zotero_link=normalize_item(item).zotero_link,
            in_craft=_engine.lookup(item.key),
        )
        for item in items
    ]


@router.get("/collections", response_model=list[CollectionModel])
async def list_collections():
    collections = await _collections.ensure_cache()
    return [CollectionModel(key=c.key, name=c.name) for c in collections]


@router.post("/sync", response_model=SyncResponse)
async def sync(request: SyncRequest):
    items = await _find_items(request.query, request.limit, request.collection)
    report = await _engine.sync_items(items, refresh=True)
    return SyncResponse(
        summary=report.summary,
        outcomes=[OutcomeModel(**asdict(o)) for o in report.outcomes],
    )


@router.delete("/items/{remote_id}", response_model=OutcomeModel)
async def delete_item(remote_id: str):
    outcome = await _engine.delete_item(remote_id)
    if outcome.status is SyncStatus.ERROR:
        raise HTTPException(status_code=502, detail=outcome.details)
    return OutcomeModel(**asdict(outcome))


@router.get("/log", response_model=list[OutcomeModel])
async def sync_log():
    return [OutcomeModel(**asdict(o)) for o in _engine.log]
