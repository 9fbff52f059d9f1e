"""Parse a Craft collection schema into plain field definitions."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_TITLE_KEY = "title"


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    key: str
    type: str
    options: tuple[str, ...] = ()


@dataclass
class Schema:
    title_key: str = DEFAULT_TITLE_KEY
    fields: list[FieldDefinition] = field(default_factory=list)


def option_to_string(option: object) -> str | None:
    """Options arrive as strings, numbers or objects with a display label."""
    if isinstance(option, bool):
        return None
    if isinstance(option, (str, int, float)):
        return str(option)
    if isinstance(option, dict):
        for label_key in ("name", "title", "value", "label"):
            candidate = option.get(label_key)
            if isinstance(candidate, (str, int, float)) and not isinstance(candidate, bool):
                return str(candidate)
    return None


def parse_field(prop: dict) -> FieldDefinition | None:
    name = prop.get("name")
    if not name:
        return None
    options = tuple(
        text for text in (option_to_string(o) for o in prop.get("options") or []) if text
    )
    return FieldDefinition(
        name=name,
        key=prop.get("key") or name,
        type=prop.get("type") or "",
        options=options,
    )


def parse_schema(data: dict | None) -> Schema | None:
    """Build a Schema from the JSON returned by ``/schema?format=schema``."""
    if not data:
        return None
    content = data.get("contentPropDetails") or {}
    fields = []
    for prop in data.get("properties") or []:
        parsed = parse_field(prop)
        if parsed is None:
            logger.debug("Skipping schema property without a name: %s", prop)
            continue
        fields.append(parsed)
    return Schema(title_key=content.get("key") or DEFAULT_TITLE_KEY, fields=fields)
