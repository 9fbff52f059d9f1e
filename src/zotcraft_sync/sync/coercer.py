"""Coerce raw values into the representation a Craft field type expects."""

import math
import re
from datetime import date

from zotcraft_sync.craft.schema import FieldDefinition
from zotcraft_sync.sync.field_map import normalize_name

DATE_LINK_PREFIX = "date://"

# Substrings of a field type that mark it as taking a block link object
OBJECT_TYPE_HINTS = ("block", "link", "reference", "relation", "object")

# First option present wins when choosing a status for new records
PREFERRED_STATUS_OPTIONS = ["to read", "waiting", "next up", "nextup", "backlog", "unread"]

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")


def expects_object(field_type: str) -> bool:
    lowered = field_type.lower()
    return any(hint in lowered for hint in OBJECT_TYPE_HINTS)


def is_select_type(field_type: str) -> bool:
    return normalize_name(field_type) in ("select", "multiselect")


def local_date_string() -> str:
    return date.today().isoformat()


def parse_int(value: str) -> int | None:
    """Integer prefix of a string (``"1999.5"`` -> 1999), None when absent."""
    match = _INT_PREFIX_RE.match(value)
    return int(match.group(1)) if match else None


def match_option(options: tuple[str, ...], value: str) -> str | None:
    """Case-insensitive exact match returning the option's own casing."""
    lowered = value.lower()
    for option in options:
        if option.lower() == lowered:
            return option
    return None


def format_date_title(date_string: str, today: str | None = None) -> str:
    """``2026-10-18`` -> ``Sun, Oct 18``, with a ``Today, `` prefix for today."""
    try:
        d = date.fromisoformat(date_string)
    except ValueError:
        return date_string
    formatted = f"{_WEEKDAYS[d.weekday()]}, {_MONTHS[d.month - 1]} {d.day}"
    if date_string == (today or local_date_string()):
        return f"Today, {formatted}"
    return formatted


def build_link_object(value: str) -> dict:
    if value.startswith(DATE_LINK_PREFIX):
        return {"blockId": value, "title": format_date_title(value[len(DATE_LINK_PREFIX):])}
    return {"blockId": value, "title": value}


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_blank(entry) for entry in value)
    return isinstance(value, str) and not value.strip()


def _as_text(value: object) -> str:
    """Lists become a comma-separated string of their non-blank entries."""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if not _is_blank(v))
    return str(value)


def set_property_value(
    properties: dict, field: FieldDefinition | None, value: object
) -> None:
    """Write ``value`` under ``field.key`` in the shape the field type expects.

    Missing fields and empty values are skipped so no empty properties are
    ever created remotely. Unparseable numbers are dropped silently.
    """
    if field is None or _is_blank(value):
        return

    field_type = normalize_name(field.type)

    if field_type == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if not (isinstance(value, float) and math.isnan(value)):
                properties[field.key] = value
            return
        parsed = parse_int(str(value))
        if parsed is not None:
            properties[field.key] = parsed
        return

    if field_type in ("url", "date", "text", "richtext"):
        properties[field.key] = _as_text(value)
        return

    if field_type == "select":
        raw = _as_text(value)
        properties[field.key] = match_option(field.options, raw) or raw
        return

    if field_type == "multiselect":
        values = value if isinstance(value, (list, tuple)) else [value]
        selected = []
        for entry in values:
            raw = str(entry).strip()
            if not raw:
                continue
            selected.append(match_option(field.options, raw) or raw)
        if selected:
            properties[field.key] = selected
        return

    if expects_object(field.type) and isinstance(value, str):
        properties[field.key] = build_link_object(value)
    else:
        properties[field.key] = value


def choose_status_option(field: FieldDefinition | None) -> str | None:
    """Pick the schema's "unread" style option for new records, if any."""
    if field is None or not field.options:
        return None
    for candidate in PREFERRED_STATUS_OPTIONS:
        match = match_option(field.options, candidate)
        if match:
            return match
    return None


def needs_new_options(field: FieldDefinition | None, values: list[str]) -> bool:
    """True when writing ``values`` to a select field may create options."""
    if field is None or not values or not is_select_type(field.type):
        return False
    if not field.options:
        return True
    return any(match_option(field.options, v) is None for v in values)
