from zotcraft_sync.craft.schema import FieldDefinition, Schema
from zotcraft_sync.sync.field_map import (
    FIELD_SYNONYMS,
    build_schema_index,
    find_field,
    normalize_name,
)


def _schema(*fields: FieldDefinition) -> Schema:
    return Schema(fields=list(fields))


def test_normalize_name():
    assert normalize_name("Publication Year") == "publicationyear"
    assert normalize_name("journal/publisher") == "journalpublisher"
    assert normalize_name("Zotero_URI") == "zoterouri"
    assert normalize_name("") == ""


def test_index_contains_name_and_key():
    author = FieldDefinition("Author", "prop_1", "text")
    index = build_schema_index(_schema(author))
    assert index["author"] is author
    assert index["prop1"] is author


def test_index_of_missing_schema_is_empty():
    assert build_schema_index(None) == {}


def test_authors_matches_field_named_author():
    author = FieldDefinition("Author", "a1", "text")
    index = build_schema_index(_schema(author))
    assert find_field(index, "authors") is author


def test_match_ignores_case_and_punctuation():
    link = FieldDefinition("ZOTERO-Link", "zl", "url")
    index = build_schema_index(_schema(link))
    assert find_field(index, "zotero_link") is link


def test_unlisted_variant_does_not_match():
    field = FieldDefinition("author_name", "an", "text")
    index = build_schema_index(_schema(field))
    assert find_field(index, "authors") is None


def test_synonym_priority_order():
    """'url' is listed before 'doi', so it wins when both exist."""
    doi = FieldDefinition("DOI", "doi", "url")
    url = FieldDefinition("URL", "url_key", "url")
    index = build_schema_index(_schema(doi, url))
    assert find_field(index, "url") is url


def test_match_by_storage_key():
    field = FieldDefinition("Wer hat's geschrieben", "authors", "text")
    index = build_schema_index(_schema(field))
    assert find_field(index, "authors") is field


def test_every_concept_has_synonyms():
    for concept, synonyms in FIELD_SYNONYMS.items():
        assert synonyms, concept
