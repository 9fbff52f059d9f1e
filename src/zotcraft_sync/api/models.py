"""Pydantic models for the HTTP API."""

from pydantic import BaseModel, Field

from zotcraft_sync.sync.engine import SyncStatus


class SyncRequest(BaseModel):
    """Select Zotero items to sync: a search, or the newest items when empty."""

    query: str = ""
    limit: int | None = Field(default=None, ge=1)
    collection: str | None = None


class ItemSummary(BaseModel):
    key: str
    title: str
    subtitle: str
    zotero_link: str
    in_craft: str | None = None  # Craft item id when already synced


class OutcomeModel(BaseModel):
    title: str
    status: SyncStatus
    details: str | None = None
    error_details: str | None = None
    payload: str | None = None
    url: str | None = None
    zotero_link: str | None = None
    remote_id: str | None = None


class SyncResponse(BaseModel):
    summary: str
    outcomes: list[OutcomeModel]


class CollectionModel(BaseModel):
    key: str
    name: str
