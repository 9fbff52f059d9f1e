import json
import logging
import re
from urllib.parse import quote

import httpx

from zotcraft_sync.craft.schema import DEFAULT_TITLE_KEY, Schema, parse_schema

logger = logging.getLogger(__name__)

_LINK_ID_RE = re.compile(r"connect\.craft\.do/links/([^/]+)")


class CraftAPIError(Exception):
    """Raised when a Craft API call returns a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code} {message}")


def format_error_text(text: str) -> str:
    """Pretty-print JSON error bodies; pass anything else through trimmed."""
    trimmed = text.strip()
    if not trimmed:
        return "Unknown error"
    try:
        return json.dumps(json.loads(trimmed), indent=2)
    except ValueError:
        return trimmed


def normalize_api_base(base_url: str) -> str:
    """Point share links at the Connect API host and path."""
    trimmed = base_url.strip().rstrip("/")
    try:
        url = httpx.URL(trimmed)
    except httpx.InvalidURL:
        return re.sub(r"/connect-server/links/", "/links/", trimmed, flags=re.IGNORECASE)

    if url.host.lower() in ("craft.do", "www.craft.do"):
        url = url.copy_with(host="connect.craft.do")
    if url.path.startswith("/connect-server/links/"):
        url = url.copy_with(path=url.path.replace("/connect-server/links/", "/links/", 1))
    return str(url).rstrip("/")


def build_deep_link(block_id: str, space_id: str | None = None) -> str:
    """``craftdocs://`` link that opens a block in the desktop app."""
    if space_id:
        return f"craftdocs://open?spaceId={quote(space_id, safe='')}&blockId={quote(block_id, safe='')}"
    return f"craftdocs://open?blockId={quote(block_id, safe='')}"


def build_web_url(block_id: str, api_base: str) -> str | None:
    """Web URL for a block, derivable only from a ``/links/<id>`` API base."""
    m = _LINK_ID_RE.search(api_base)
    if not m:
        return None
    return f"https://www.craft.do/s/{m.group(1)}?blockId={quote(block_id, safe='')}"


class CraftClient:
    """Client for one Craft collection exposed through the Connect API."""

    def __init__(
        self,
        api_base: str,
        collection_id: str,
        api_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = normalize_api_base(api_base)
        self._collection_id = collection_id
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def _items_path(self) -> str:
        return f"/collections/{self._collection_id}/items"

    @staticmethod
    def _raise_for_status(resp: httpx.Response, action: str) -> None:
        if resp.is_success:
            return
        raise CraftAPIError(
            resp.status_code, f"Failed to {action}: {format_error_text(resp.text)}"
        )

    async def get_schema(self) -> Schema | None:
        """Fetch the collection schema. ``None`` means no schema to enforce."""
        resp = await self._client.get(
            f"/collections/{self._collection_id}/schema", params={"format": "schema"}
        )
        if not resp.is_success:
            logger.warning(
                "Craft schema unavailable (%d); writing without schema", resp.status_code
            )
            return None
        return parse_schema(resp.json())

    async def list_items(self) -> list[dict]:
        """Return every item in the collection as ``{id, properties, ...}``."""
        resp = await self._client.get(self._items_path, params={"maxDepth": 0})
        self._raise_for_status(resp, "fetch Craft collection items")
        return resp.json().get("items") or []

    async def create_item(
        self,
        title: str,
        properties: dict,
        blocks: list[dict] | None = None,
        title_key: str = DEFAULT_TITLE_KEY,
        *,
        allow_new_select_options: bool = False,
    ) -> str:
        """Create an item and its content blocks. Returns the new item id."""
        body: dict = {"items": [{title_key: title, "properties": properties}]}
        if allow_new_select_options:
            body["allowNewSelectOptions"] = True
        resp = await self._client.post(self._items_path, json=body)
        self._raise_for_status(resp, "create Craft collection item")

        created = resp.json().get("items") or []
        new_id = created[0].get("id") if created else None
        if not new_id:
            raise CraftAPIError(resp.status_code, "Created item ID not found")

        if blocks:
            await self.append_blocks(new_id, blocks)
        return new_id

    async def update_item(
        self,
        item_id: str,
        title: str,
        properties: dict,
        title_key: str = DEFAULT_TITLE_KEY,
        *,
        allow_new_select_options: bool = False,
    ) -> None:
        body: dict = {
            "itemsToUpdate": [{"id": item_id, title_key: title, "properties": properties}]
        }
        if allow_new_select_options:
            body["allowNewSelectOptions"] = True
        resp = await self._client.put(self._items_path, json=body)
        self._raise_for_status(resp, f"update Craft collection item (baseUrl: {self.base_url})")

    async def append_blocks(self, item_id: str, blocks: list[dict]) -> None:
        """Append content blocks at the end of an item's page."""
        if not blocks:
            return
        resp = await self._client.post(
            "/blocks",
            json={"blocks": blocks, "position": {"position": "end", "pageId": item_id}},
        )
        self._raise_for_status(resp, "add content to Craft item")

    async def delete_items(self, item_ids: list[str]) -> None:
        resp = await self._client.request(
            "DELETE", self._items_path, json={"idsToDelete": item_ids}
        )
        self._raise_for_status(resp, "delete Craft collection items")

    async def resolve_daily_note_id(self, date: str) -> str:
        """Return the block id of the daily note for ``YYYY-MM-DD``."""
        resp = await self._client.get("/blocks", params={"date": date})
        self._raise_for_status(resp, "fetch daily note")
        block_id = resp.json().get("id")
        if not block_id:
            raise CraftAPIError(resp.status_code, "Daily note ID missing in response")
        return block_id
