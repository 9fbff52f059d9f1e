import argparse

import pytest

from zotcraft_sync import cli
from zotcraft_sync.config import Settings
from zotcraft_sync.utils.zotero_uri import build_zotero_link


def _settings(**overrides) -> Settings:
    values = {
        "craft_api_base": "https://connect.craft.do/links/abc/api/v1",
        "craft_collection_id": "col-1",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeCraft:
    def __init__(self):
        self.deleted = []
        self.closed = False

    async def get_schema(self):
        return None

    async def list_items(self):
        return [{"id": "r-1", "properties": {"zotero": build_zotero_link("AAAA1111")}}]

    async def delete_items(self, item_ids):
        self.deleted.extend(item_ids)

    async def close(self):
        self.closed = True


def test_parse_sync_arguments():
    args = cli.build_parser().parse_args(
        ["sync", "attention", "--limit", "3", "--collection", "Thesis / Ch1", "--no-notes"]
    )
    assert args.command == "sync"
    assert args.query == "attention"
    assert args.limit == 3
    assert args.collection == "Thesis / Ch1"
    assert args.notes is False
    assert args.open is False


def test_notes_default_unset():
    args = cli.build_parser().parse_args(["sync"])
    assert args.notes is None
    assert args.query == ""


def test_command_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


@pytest.mark.asyncio
async def test_delete_by_zotero_key(monkeypatch):
    craft = FakeCraft()
    monkeypatch.setattr(cli, "_craft_client", lambda settings: craft)

    code = await cli.delete_command(_settings(), argparse.Namespace(target="AAAA1111"))

    assert code == 0
    assert craft.deleted == ["r-1"]
    assert craft.closed


@pytest.mark.asyncio
async def test_delete_by_craft_id(monkeypatch):
    craft = FakeCraft()
    monkeypatch.setattr(cli, "_craft_client", lambda settings: craft)

    code = await cli.delete_command(_settings(), argparse.Namespace(target="other-id"))

    assert code == 0
    assert craft.deleted == ["other-id"]


def test_open_target_prefers_deep_link():
    assert cli._open_target(_settings(craft_space_id="s1"), "b1") == (
        "craftdocs://open?spaceId=s1&blockId=b1"
    )
    assert cli._open_target(_settings(), "b1") == "https://www.craft.do/s/abc?blockId=b1"


def test_invalid_configuration_exits(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CRAFT_API_BASE", raising=False)
    monkeypatch.delenv("CRAFT_COLLECTION_ID", raising=False)
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["collections"])
    assert exc_info.value.code == 1
