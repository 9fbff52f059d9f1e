"""Fill the "Reading Date" field with today, linking the daily note if needed."""

import logging
from enum import Enum
from typing import Protocol

from zotcraft_sync.sync.coercer import expects_object, format_date_title, local_date_string
from zotcraft_sync.sync.field_map import SchemaIndex, find_field

logger = logging.getLogger(__name__)


class DailyNoteLookup(Protocol):
    async def resolve_daily_note_id(self, date: str) -> str: ...


class ReadingDateState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"


class ReadingDateResolver:
    """Resolves today's daily note at most once per session and day."""

    def __init__(self, sink: DailyNoteLookup | None) -> None:
        self._sink = sink
        self.state = ReadingDateState.UNRESOLVED
        self.date: str | None = None
        self.daily_note_id: str | None = None
        self.warning: str | None = None

    async def apply(self, properties: dict, schema_index: SchemaIndex) -> None:
        field = find_field(schema_index, "reading_date")
        if field is None:
            return

        today = local_date_string()
        if "date" in field.type.lower() or not expects_object(field.type):
            properties[field.key] = today
            return

        block_id = await self._resolve(today)
        if block_id:
            properties[field.key] = {"blockId": block_id, "title": format_date_title(today, today)}

    async def _resolve(self, today: str) -> str | None:
        if self.date != today:
            # A new day has its own daily note
            self.date = today
            self.state = ReadingDateState.UNRESOLVED
            self.daily_note_id = None
            self.warning = None

        if self.state is ReadingDateState.RESOLVED:
            return self.daily_note_id
        if self.state is ReadingDateState.UNAVAILABLE:
            return None

        if self._sink is None:
            self._give_up("Craft API not configured; skipping Reading Date link.")
            return None

        try:
            self.daily_note_id = await self._sink.resolve_daily_note_id(today)
        except Exception as exc:
            self._give_up(
                f"Failed to resolve daily note; skipping Reading Date link. {exc}"
            )
            return None

        self.state = ReadingDateState.RESOLVED
        return self.daily_note_id

    def _give_up(self, message: str) -> None:
        self.state = ReadingDateState.UNAVAILABLE
        self.warning = message
        logger.warning(message)
