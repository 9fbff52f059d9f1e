from datetime import date, timedelta

from zotcraft_sync.craft.schema import FieldDefinition
from zotcraft_sync.sync.coercer import (
    build_link_object,
    choose_status_option,
    format_date_title,
    needs_new_options,
    set_property_value,
)


def _field(field_type: str, options: tuple[str, ...] = (), key: str = "k") -> FieldDefinition:
    return FieldDefinition(name="Field", key=key, type=field_type, options=options)


def _coerce(field: FieldDefinition | None, value) -> dict:
    props: dict = {}
    set_property_value(props, field, value)
    return props


class TestSkips:
    def test_no_field(self):
        assert _coerce(None, "value") == {}

    def test_none_value(self):
        assert _coerce(_field("text"), None) == {}

    def test_blank_string(self):
        assert _coerce(_field("text"), "   ") == {}


class TestNumber:
    def test_integer_string(self):
        assert _coerce(_field("number"), "2020") == {"k": 2020}

    def test_truncating_parse(self):
        assert _coerce(_field("number"), "1999.5") == {"k": 1999}

    def test_unparseable(self):
        assert _coerce(_field("number"), "abc") == {}

    def test_numeric_input_kept(self):
        assert _coerce(_field("number"), 3) == {"k": 3}

    def test_nan_dropped(self):
        assert _coerce(_field("number"), float("nan")) == {}


class TestLiteralTypes:
    def test_url(self):
        assert _coerce(_field("url"), "https://x.org") == {"k": "https://x.org"}

    def test_date(self):
        assert _coerce(_field("date"), "2024-01-02") == {"k": "2024-01-02"}

    def test_text(self):
        assert _coerce(_field("text"), "hello") == {"k": "hello"}

    def test_rich_text_spellings(self):
        assert _coerce(_field("richText"), "a") == {"k": "a"}
        assert _coerce(_field("rich-text"), "a") == {"k": "a"}

    def test_list_joined_for_text(self):
        assert _coerce(_field("text"), ["ml", " ", "nlp"]) == {"k": "ml, nlp"}

    def test_empty_list_skipped_for_text(self):
        assert _coerce(_field("text"), []) == {}
        assert _coerce(_field("richText"), ["", "  "]) == {}


class TestSelect:
    OPTIONS = ("To Read", "Reading", "Done")

    def test_canonical_casing(self):
        assert _coerce(_field("select", self.OPTIONS), "to read") == {"k": "To Read"}

    def test_unknown_option_written_raw(self):
        assert _coerce(_field("select", self.OPTIONS), "Abandoned") == {"k": "Abandoned"}

    def test_no_options(self):
        assert _coerce(_field("select"), "anything") == {"k": "anything"}

    def test_single_tag_list_matches_option(self):
        assert _coerce(_field("select", self.OPTIONS), ["done"]) == {"k": "Done"}

    def test_list_joined(self):
        assert _coerce(_field("select"), ["ml", "nlp"]) == {"k": "ml, nlp"}

    def test_empty_list_skipped(self):
        assert _coerce(_field("select", self.OPTIONS), []) == {}


class TestMultiSelect:
    def test_scalar_wrapped(self):
        assert _coerce(_field("multiSelect"), "ml") == {"k": ["ml"]}

    def test_matches_and_falls_back(self):
        field = _field("multi-select", ("Machine Learning", "NLP"))
        result = _coerce(field, ["machine learning", " vision ", ""])
        assert result == {"k": ["Machine Learning", "vision"]}

    def test_all_empty_entries(self):
        assert _coerce(_field("multi_select"), ["", "  "]) == {}

    def test_empty_list(self):
        assert _coerce(_field("multiSelect"), []) == {}


class TestOtherTypes:
    def test_link_object_for_block_type(self):
        result = _coerce(_field("blockLink"), "abc-123")
        assert result == {"k": {"blockId": "abc-123", "title": "abc-123"}}

    def test_unknown_type_written_unchanged(self):
        assert _coerce(_field("checkbox"), "yes") == {"k": "yes"}

    def test_object_type_with_non_string(self):
        assert _coerce(_field("relation"), ["a"]) == {"k": ["a"]}


class TestDateTitles:
    def test_plain_date(self):
        assert format_date_title("2024-03-05", today="2024-03-06") == "Tue, Mar 5"

    def test_today_prefix(self):
        assert format_date_title("2024-03-05", today="2024-03-05") == "Today, Tue, Mar 5"

    def test_invalid_date_returned_unchanged(self):
        assert format_date_title("someday") == "someday"

    def test_date_link_object(self):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        link = build_link_object(f"date://{yesterday}")
        assert link["blockId"] == f"date://{yesterday}"
        assert not link["title"].startswith("Today")

    def test_date_link_object_today(self):
        today = date.today().isoformat()
        assert build_link_object(f"date://{today}")["title"].startswith("Today, ")


class TestStatus:
    def test_prefers_to_read(self):
        field = _field("select", ("Done", "Backlog", "To Read"))
        assert choose_status_option(field) == "To Read"

    def test_falls_back_through_list(self):
        assert choose_status_option(_field("select", ("Done", "Unread"))) == "Unread"

    def test_no_preferred_option(self):
        assert choose_status_option(_field("select", ("Done",))) is None

    def test_no_options(self):
        assert choose_status_option(_field("select")) is None
        assert choose_status_option(None) is None


class TestNeedsNewOptions:
    def test_text_tags_never_need_flag(self):
        assert not needs_new_options(_field("text"), ["a"])

    def test_all_tags_known(self):
        assert not needs_new_options(_field("multiSelect", ("A", "B")), ["a", "b"])

    def test_unknown_tag(self):
        assert needs_new_options(_field("multiSelect", ("A",)), ["a", "c"])

    def test_undeclared_options(self):
        assert needs_new_options(_field("select"), ["a"])

    def test_no_tags(self):
        assert not needs_new_options(_field("multiSelect"), [])

    def test_no_field(self):
        assert not needs_new_options(None, ["a"])
