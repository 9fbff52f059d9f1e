"""Interface shared by the local and web Zotero readers."""

from typing import Protocol

from zotcraft_sync.config import Settings
from zotcraft_sync.zotero.client import ZoteroWebSource
from zotcraft_sync.zotero.local import LocalZoteroSource
from zotcraft_sync.zotero.models import Collection, Item


class BibliographicSource(Protocol):
    async def list_recent(
        self, limit: int, collection_key: str | None = None
    ) -> list[Item]: ...

    async def search(
        self, query: str, limit: int, collection_key: str | None = None
    ) -> list[Item]: ...

    async def list_collections(self) -> list[Collection]: ...

    async def fetch_child_notes(self, item_key: str) -> list[str]: ...

    async def close(self) -> None: ...


def create_source(settings: Settings) -> BibliographicSource:
    """Build the reader for the configured Zotero mode."""
    if settings.zotero_mode == "web":
        user_id, api_key = settings.require_web_credentials()
        return ZoteroWebSource(user_id, api_key)

    return LocalZoteroSource(
        settings.zotero_db_path,
        settings.cache_dir,
        cache_period_minutes=settings.cache_period,
    )
