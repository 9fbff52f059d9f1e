from zotcraft_sync.utils.zotero_uri import (
    build_zotero_link,
    find_zotero_link,
    parse_zotero_link,
)


def test_build_link():
    assert build_zotero_link("A5X7AKTH") == "zotero://select/library/items/A5X7AKTH"


def test_parse_select_link():
    assert parse_zotero_link("zotero://select/library/items/A5X7AKTH") == "A5X7AKTH"


def test_parse_group_uri():
    assert parse_zotero_link("https://www.zotero.org/groups/483726/items/A5X7AKTH") == "A5X7AKTH"


def test_parse_user_uri_without_www():
    assert parse_zotero_link("https://zotero.org/users/12345/items/ABCD1234") == "ABCD1234"


def test_parse_invalid():
    assert parse_zotero_link("https://google.com") is None
    assert parse_zotero_link("not a url") is None
    assert parse_zotero_link("") is None


def test_parse_link_embedded_in_text():
    text = "See zotero://select/library/items/KEY12345 for details"
    assert parse_zotero_link(text) == "KEY12345"


def test_find_in_plain_string():
    link = build_zotero_link("KEY1")
    assert find_zotero_link(link) == link
    assert find_zotero_link("https://example.org") is None


def test_find_in_nested_values():
    link = build_zotero_link("KEY2")
    properties = {
        "authors": "Someone",
        "tags": ["a", "b"],
        "zotero": {"url": link, "title": "Open in Zotero"},
    }
    assert find_zotero_link(properties) == link


def test_find_in_list_of_objects():
    link = build_zotero_link("KEY3")
    assert find_zotero_link([{"blockId": "x"}, [link]]) == link


def test_find_ignores_other_types():
    assert find_zotero_link(None) is None
    assert find_zotero_link(42) is None
    assert find_zotero_link({}) is None
