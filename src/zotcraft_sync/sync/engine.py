"""Core sync engine: normalize → resolve → coerce → create-or-update."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from zotcraft_sync.craft.blocks import build_note_blocks
from zotcraft_sync.craft.schema import DEFAULT_TITLE_KEY, Schema
from zotcraft_sync.sync.coercer import (
    choose_status_option,
    needs_new_options,
    set_property_value,
)
from zotcraft_sync.sync.field_map import (
    CONCEPT_ATTRIBUTES,
    SchemaIndex,
    build_schema_index,
    find_field,
)
from zotcraft_sync.sync.identity_index import IdentityIndex
from zotcraft_sync.sync.normalizer import CanonicalAttributes, CitationKeyCache, normalize_item
from zotcraft_sync.sync.reading_date import ReadingDateResolver
from zotcraft_sync.utils.zotero_uri import build_zotero_link
from zotcraft_sync.zotero.models import Item
from zotcraft_sync.zotero.source import BibliographicSource

logger = logging.getLogger(__name__)

MAX_DETAILS_LENGTH = 140


class CraftSink(Protocol):
    async def get_schema(self) -> Schema | None: ...

    async def list_items(self) -> list[dict]: ...

    async def create_item(
        self,
        title: str,
        properties: dict,
        blocks: list[dict] | None = None,
        title_key: str = DEFAULT_TITLE_KEY,
        *,
        allow_new_select_options: bool = False,
    ) -> str: ...

    async def update_item(
        self,
        item_id: str,
        title: str,
        properties: dict,
        title_key: str = DEFAULT_TITLE_KEY,
        *,
        allow_new_select_options: bool = False,
    ) -> None: ...

    async def append_blocks(self, item_id: str, blocks: list[dict]) -> None: ...

    async def delete_items(self, item_ids: list[str]) -> None: ...

    async def resolve_daily_note_id(self, date: str) -> str: ...


class SyncStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class SyncOutcome:
    title: str
    status: SyncStatus
    details: str | None = None
    error_details: str | None = None
    payload: str | None = None
    url: str | None = None
    zotero_link: str | None = None
    remote_id: str | None = None


@dataclass
class SyncReport:
    outcomes: list[SyncOutcome] = field(default_factory=list)

    def count(self, status: SyncStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def summary(self) -> str:
        updated = self.count(SyncStatus.UPDATED)
        update_info = f", updated {updated}" if updated else ""
        return (
            f"Created {self.count(SyncStatus.CREATED)}{update_info}, "
            f"skipped {self.count(SyncStatus.SKIPPED)}, "
            f"errors {self.count(SyncStatus.ERROR)}."
        )


@dataclass
class SyncSession:
    """State loaded once and shared by every batch of one engine."""

    reading_date: ReadingDateResolver
    schema_index: SchemaIndex = field(default_factory=dict)
    title_key: str = DEFAULT_TITLE_KEY
    identity: IdentityIndex = field(default_factory=IdentityIndex)
    citation_keys: CitationKeyCache = field(default_factory=CitationKeyCache)
    loaded: bool = False
    reading_date_reported: str | None = None


def truncate(value: str, max_length: int = MAX_DETAILS_LENGTH) -> str:
    if len(value) <= max_length:
        return value
    return value[: max_length - 1] + "…"


class SyncEngine:
    def __init__(
        self,
        sink: CraftSink,
        source: BibliographicSource | None = None,
        *,
        sync_notes: bool = False,
    ) -> None:
        self._sink = sink
        self._source = source
        self._sync_notes = sync_notes
        # Batches and deletes run one at a time so index updates stay ordered
        self._lock = asyncio.Lock()
        self.log: list[SyncOutcome] = []
        self.reset()

    @property
    def session(self) -> SyncSession:
        return self._session

    def reset(self) -> None:
        """Forget the schema, identity index and per-session caches."""
        self._session = SyncSession(reading_date=ReadingDateResolver(self._sink))

    async def load(self) -> None:
        async with self._lock:
            await self._ensure_loaded()

    async def _ensure_loaded(self) -> None:
        if self._session.loaded:
            return
        schema = await self._sink.get_schema()
        self._session.schema_index = build_schema_index(schema)
        self._session.title_key = schema.title_key if schema else DEFAULT_TITLE_KEY

        remote_items = await self._sink.list_items()
        self._session.identity = IdentityIndex.from_remote_items(remote_items)
        self._session.loaded = True
        logger.info(
            "Loaded Craft schema (%d fields) and %d linked items",
            len(schema.fields) if schema else 0, len(self._session.identity),
        )

    def lookup(self, item_key: str) -> str | None:
        """Craft id already holding this Zotero item, if the index is loaded."""
        return self._session.identity.get(build_zotero_link(item_key))

    def build_properties(self, attrs: CanonicalAttributes) -> dict:
        """Resolve and coerce every canonical attribute against the schema."""
        index = self._session.schema_index
        properties: dict = {}
        for concept, attr in CONCEPT_ATTRIBUTES.items():
            set_property_value(properties, find_field(index, concept), getattr(attrs, attr))
        return properties

    def _record(self, outcomes: list[SyncOutcome], outcome: SyncOutcome) -> SyncOutcome:
        outcomes.append(outcome)
        self.log.append(outcome)
        return outcome

    async def sync_items(self, items: list[Item], *, refresh: bool = False) -> SyncReport:
        """Create or update each item in order; failures never stop the batch.

        With ``refresh`` the batch starts a new session, re-reading the schema
        and the records already in Craft.
        """
        report = SyncReport()
        async with self._lock:
            if refresh:
                self.reset()
            try:
                await self._ensure_loaded()
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.exception("Could not load Craft schema or existing items")
                self._record(
                    report.outcomes,
                    SyncOutcome(
                        title="Sync",
                        status=SyncStatus.ERROR,
                        details=truncate(message),
                        error_details=message,
                    ),
                )
                return report

            for position, item in enumerate(items, start=1):
                logger.info("Syncing %d of %d: %s", position, len(items), item.key)
                await self._sync_one(item, report.outcomes)

        logger.info("Done. %s", report.summary)
        return report

    async def _sync_one(self, item: Item, outcomes: list[SyncOutcome]) -> None:
        session = self._session
        attrs = normalize_item(item, session.citation_keys)
        link = attrs.zotero_link
        url = attrs.url or None
        existing_id = session.identity.get(link)
        payload = None

        try:
            properties = self.build_properties(attrs)
            # New records only; updates keep the user's reading progress
            if existing_id is None:
                status_field = find_field(session.schema_index, "status")
                set_property_value(properties, status_field, choose_status_option(status_field))

            await session.reading_date.apply(properties, session.schema_index)
            self._report_reading_date(outcomes)

            blocks = await self._build_blocks(item) if self._sync_notes else []
            allow_new = needs_new_options(find_field(session.schema_index, "tags"), attrs.tags)
            payload = json.dumps(
                {"title": attrs.title, "properties": properties, "blocks": blocks},
                indent=2,
                ensure_ascii=False,
            )

            if existing_id:
                await self._sink.update_item(
                    existing_id, attrs.title, properties, session.title_key,
                    allow_new_select_options=allow_new,
                )
                if blocks:
                    await self._sink.append_blocks(existing_id, blocks)
                status, remote_id = SyncStatus.UPDATED, existing_id
            else:
                remote_id = await self._sink.create_item(
                    attrs.title, properties, blocks, session.title_key,
                    allow_new_select_options=allow_new,
                )
                session.identity.add(link, remote_id)
                status = SyncStatus.CREATED
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("Failed to sync %s (%s): %s", item.key, attrs.title, message)
            self._record(
                outcomes,
                SyncOutcome(
                    title=attrs.title,
                    status=SyncStatus.ERROR,
                    details=truncate(message),
                    error_details=message,
                    payload=payload,
                    url=url,
                    zotero_link=link,
                ),
            )
            return

        logger.info("%s %s → Craft item %s", status.value.capitalize(), item.key, remote_id)
        self._record(
            outcomes,
            SyncOutcome(
                title=attrs.title,
                status=status,
                url=url,
                zotero_link=link,
                remote_id=remote_id,
            ),
        )

    def _report_reading_date(self, outcomes: list[SyncOutcome]) -> None:
        resolver = self._session.reading_date
        if resolver.warning and self._session.reading_date_reported != resolver.date:
            self._session.reading_date_reported = resolver.date
            self._record(
                outcomes,
                SyncOutcome(title="Reading Date", status=SyncStatus.SKIPPED, details=resolver.warning),
            )

    async def _build_blocks(self, item: Item) -> list[dict]:
        if self._source is not None:
            notes = await self._source.fetch_child_notes(item.key)
        else:
            notes = item.notes
        return build_note_blocks(notes)

    async def delete_item(self, remote_id: str, title: str | None = None) -> SyncOutcome:
        """Delete a Craft record and forget its Zotero link."""
        title = title or remote_id
        outcomes: list[SyncOutcome] = []
        async with self._lock:
            try:
                await self._sink.delete_items([remote_id])
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.warning("Failed to delete Craft item %s: %s", remote_id, message)
                return self._record(
                    outcomes,
                    SyncOutcome(
                        title=title,
                        status=SyncStatus.ERROR,
                        details=truncate(message),
                        error_details=message,
                        remote_id=remote_id,
                    ),
                )

            removed = self._session.identity.remove_remote_id(remote_id)
            logger.info("Deleted Craft item %s (%d links dropped)", remote_id, len(removed))
            return self._record(
                outcomes,
                SyncOutcome(
                    title=title,
                    status=SyncStatus.DELETED,
                    details="Deleted from Craft.",
                    zotero_link=removed[0] if removed else None,
                    remote_id=remote_id,
                ),
            )
