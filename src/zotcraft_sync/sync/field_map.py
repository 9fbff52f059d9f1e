"""Maps canonical concepts to Craft schema fields through synonym lists."""

import re

from zotcraft_sync.craft.schema import FieldDefinition, Schema

SchemaIndex = dict[str, FieldDefinition]

# Priority-ordered names accepted for each concept. Extend these lists to
# support new collection vocabularies.
FIELD_SYNONYMS: dict[str, list[str]] = {
    "authors": ["authors", "author", "creators"],
    "year": ["year", "publication year", "pubyear"],
    "journal": ["journal", "publication", "publisher", "journal/publisher"],
    "url": ["url", "link", "doi"],
    "zotero_link": ["zotero link", "zotero uri"],
    "date_added": ["date added", "added"],
    "publication_type": ["publication type", "item type", "type"],
    "tags": ["tags", "tag"],
    "abstract": ["abstract", "abstractnote", "summary"],
    "citation_key": ["citation key", "citekey"],
    "status": ["status", "reading status"],
    "reading_date": ["reading date", "date read", "read date"],
}

# Canonical attribute written for each concept (status and reading date are
# handled separately by the engine)
CONCEPT_ATTRIBUTES: dict[str, str] = {
    "authors": "authors",
    "year": "year",
    "journal": "venue",
    "url": "url",
    "zotero_link": "zotero_link",
    "date_added": "date_added",
    "publication_type": "item_type",
    "citation_key": "citation_key",
    "abstract": "abstract",
    "tags": "tags",
}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_name(value: str) -> str:
    """Lowercase and drop everything that is not a letter or digit."""
    return _NON_ALNUM_RE.sub("", value.lower())


def build_schema_index(schema: Schema | None) -> SchemaIndex:
    """Index each field under both its display name and its storage key."""
    index: SchemaIndex = {}
    if schema is None:
        return index
    for definition in schema.fields:
        index[normalize_name(definition.name)] = definition
        if definition.key:
            index[normalize_name(definition.key)] = definition
    return index


def find_field(index: SchemaIndex, concept: str) -> FieldDefinition | None:
    """Return the first field matching the concept's synonyms, in order."""
    for synonym in FIELD_SYNONYMS[concept]:
        definition = index.get(normalize_name(synonym))
        if definition is not None:
            return definition
    return None
