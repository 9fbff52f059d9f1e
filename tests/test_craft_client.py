import json

import httpx
import pytest

from zotcraft_sync.craft.client import (
    CraftAPIError,
    CraftClient,
    build_deep_link,
    build_web_url,
    format_error_text,
    normalize_api_base,
)
from zotcraft_sync.craft.schema import option_to_string, parse_schema

API_BASE = "https://connect.craft.do/links/abc123/api/v1"


def _client(handler) -> CraftClient:
    return CraftClient(API_BASE, "col-1", "secret", transport=httpx.MockTransport(handler))


class TestHelpers:
    def test_share_host_rewritten(self):
        assert normalize_api_base("https://craft.do/links/x/api/v1/") == "https://connect.craft.do/links/x/api/v1"

    def test_connect_server_path_rewritten(self):
        base = "https://connect.craft.do/connect-server/links/x/api/v1"
        assert normalize_api_base(base) == "https://connect.craft.do/links/x/api/v1"

    def test_other_hosts_untouched(self):
        assert normalize_api_base("http://localhost:9000/api") == "http://localhost:9000/api"

    def test_format_error_text(self):
        assert format_error_text("") == "Unknown error"
        assert format_error_text(" plain ") == "plain"
        assert format_error_text('{"error":"bad"}') == '{\n  "error": "bad"\n}'

    def test_deep_link(self):
        assert build_deep_link("b 1") == "craftdocs://open?blockId=b%201"
        assert build_deep_link("b1", "s1") == "craftdocs://open?spaceId=s1&blockId=b1"

    def test_web_url(self):
        assert build_web_url("b1", API_BASE) == "https://www.craft.do/s/abc123?blockId=b1"
        assert build_web_url("b1", "https://example.org/api") is None


class TestSchemaParsing:
    def test_parse_schema(self):
        schema = parse_schema({
            "contentPropDetails": {"key": "name"},
            "properties": [
                {"name": "Authors", "key": "authors", "type": "text"},
                {
                    "name": "Status",
                    "type": "select",
                    "options": ["To Read", {"name": "Done"}, {"label": 3}, True, {"color": "red"}],
                },
                {"key": "nameless"},
            ],
        })
        assert schema.title_key == "name"
        assert [f.name for f in schema.fields] == ["Authors", "Status"]
        status = schema.fields[1]
        assert status.key == "Status"
        assert status.options == ("To Read", "Done", "3")

    def test_empty_schema(self):
        assert parse_schema(None) is None
        assert parse_schema({}) is None

    def test_default_title_key(self):
        assert parse_schema({"properties": []}).title_key == "title"

    def test_option_to_string(self):
        assert option_to_string("a") == "a"
        assert option_to_string(2) == "2"
        assert option_to_string(False) is None
        assert option_to_string({"title": "T"}) == "T"
        assert option_to_string(None) is None


class TestCraftClient:
    @pytest.mark.asyncio
    async def test_get_schema(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/links/abc123/api/v1/collections/col-1/schema"
            assert request.url.params["format"] == "schema"
            assert request.headers["Authorization"] == "Bearer secret"
            return httpx.Response(200, json={"properties": [{"name": "Year", "type": "number"}]})

        client = _client(handler)
        schema = await client.get_schema()
        await client.close()
        assert schema.fields[0].name == "Year"

    @pytest.mark.asyncio
    async def test_schema_unavailable(self):
        client = _client(lambda request: httpx.Response(404, text="nope"))
        assert await client.get_schema() is None
        await client.close()

    @pytest.mark.asyncio
    async def test_list_items(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["maxDepth"] == "0"
            return httpx.Response(200, json={"items": [{"id": "1", "properties": {}}]})

        client = _client(handler)
        assert await client.list_items() == [{"id": "1", "properties": {}}]
        await client.close()

    @pytest.mark.asyncio
    async def test_list_items_error(self):
        client = _client(lambda request: httpx.Response(401, json={"error": "unauthorized"}))
        with pytest.raises(CraftAPIError) as exc_info:
            await client.list_items()
        await client.close()
        assert exc_info.value.status_code == 401
        assert "unauthorized" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_create_item_with_blocks(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, request.url.path, json.loads(request.content)))
            if request.url.path.endswith("/items"):
                return httpx.Response(200, json={"items": [{"id": "new-1"}]})
            return httpx.Response(200, json={})

        client = _client(handler)
        blocks = [{"type": "text", "markdown": "## Notes"}]
        new_id = await client.create_item(
            "Paper", {"year": 2020}, blocks, "name", allow_new_select_options=True
        )
        await client.close()

        assert new_id == "new-1"
        method, path, body = requests[0]
        assert method == "POST"
        assert body == {
            "items": [{"name": "Paper", "properties": {"year": 2020}}],
            "allowNewSelectOptions": True,
        }
        method, path, body = requests[1]
        assert path.endswith("/blocks")
        assert body == {"blocks": blocks, "position": {"position": "end", "pageId": "new-1"}}

    @pytest.mark.asyncio
    async def test_create_without_flag_or_blocks(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"items": [{"id": "new-1"}]})

        client = _client(handler)
        await client.create_item("Paper", {})
        await client.close()

        assert bodies == [{"items": [{"title": "Paper", "properties": {}}]}]

    @pytest.mark.asyncio
    async def test_create_without_id(self):
        client = _client(lambda request: httpx.Response(200, json={"items": []}))
        with pytest.raises(CraftAPIError, match="Created item ID not found"):
            await client.create_item("Paper", {})
        await client.close()

    @pytest.mark.asyncio
    async def test_update_item(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        client = _client(handler)
        await client.update_item("id-1", "Paper", {"authors": "A"})
        await client.close()

        assert seen["method"] == "PUT"
        assert seen["body"] == {
            "itemsToUpdate": [{"id": "id-1", "title": "Paper", "properties": {"authors": "A"}}]
        }

    @pytest.mark.asyncio
    async def test_update_failure_mentions_base_url(self):
        client = _client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(CraftAPIError, match="baseUrl"):
            await client.update_item("id-1", "Paper", {})
        await client.close()

    @pytest.mark.asyncio
    async def test_delete_items(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        client = _client(handler)
        await client.delete_items(["a", "b"])
        await client.close()

        assert seen == {"method": "DELETE", "body": {"idsToDelete": ["a", "b"]}}

    @pytest.mark.asyncio
    async def test_resolve_daily_note(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["date"] == "2026-10-18"
            return httpx.Response(200, json={"id": "daily-9"})

        client = _client(handler)
        assert await client.resolve_daily_note_id("2026-10-18") == "daily-9"
        await client.close()

    @pytest.mark.asyncio
    async def test_daily_note_missing_id(self):
        client = _client(lambda request: httpx.Response(200, json={}))
        with pytest.raises(CraftAPIError):
            await client.resolve_daily_note_id("2026-10-18")
        await client.close()
