import asyncio
import logging

import httpx

from zotcraft_sync.zotero.models import Collection, Item, item_from_api

logger = logging.getLogger(__name__)

ZOTERO_API_BASE = "https://api.zotero.org"
ZOTERO_API_VERSION = "3"


class ZoteroAPIError(Exception):
    """Raised on any non-2xx response from the Zotero web API."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Zotero API error {status_code}: {message}")


class ZoteroNotFoundError(ZoteroAPIError):
    """Raised when a Zotero item or collection is not found (404)."""


class ZoteroWebSource:
    """Read items from a user library through the Zotero web API."""

    def __init__(
        self,
        user_id: str,
        api_key: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=ZOTERO_API_BASE,
            headers={
                "Zotero-API-Key": api_key,
                "Zotero-API-Version": ZOTERO_API_VERSION,
            },
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def _library(self) -> str:
        return f"/users/{self._user_id}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request with rate-limit handling and error mapping."""
        resp = await self._client.request(method, url, **kwargs)

        if resp.status_code == 429:
            retry_after = int(resp.headers.get("Retry-After", "5"))
            logger.warning("Zotero rate limited, retrying after %d seconds", retry_after)
            await asyncio.sleep(retry_after)
            resp = await self._client.request(method, url, **kwargs)

        if resp.status_code == 404:
            raise ZoteroNotFoundError(404, f"Not found: {url}")
        if resp.status_code in (401, 403):
            raise ZoteroAPIError(
                resp.status_code,
                "Access denied; check ZOTERO_USER_ID and ZOTERO_API_KEY",
            )
        if resp.is_error:
            raise ZoteroAPIError(resp.status_code, resp.text.strip() or resp.reason_phrase)
        return resp

    def _items_url(self, collection_key: str | None) -> str:
        if collection_key:
            return f"{self._library}/collections/{collection_key}/items/top"
        return f"{self._library}/items/top"

    async def list_recent(
        self, limit: int, collection_key: str | None = None
    ) -> list[Item]:
        resp = await self._request(
            "GET",
            self._items_url(collection_key),
            params={"sort": "dateAdded", "direction": "desc", "limit": limit},
        )
        return [item_from_api(entry["data"]) for entry in resp.json()]

    async def search(
        self, query: str, limit: int, collection_key: str | None = None
    ) -> list[Item]:
        query = query.strip()
        if not query:
            return await self.list_recent(limit, collection_key)
        resp = await self._request(
            "GET",
            self._items_url(collection_key),
            params={
                "q": query,
                "qmode": "titleCreatorYear",
                "sort": "dateAdded",
                "direction": "desc",
                "limit": limit,
            },
        )
        return [item_from_api(entry["data"]) for entry in resp.json()]

    async def fetch_child_notes(self, item_key: str) -> list[str]:
        """Get the HTML bodies of all child notes of an item."""
        resp = await self._request(
            "GET",
            f"{self._library}/items/{item_key}/children",
            params={"itemType": "note"},
        )
        notes = []
        for entry in resp.json():
            note = entry.get("data", {}).get("note", "")
            if note.strip():
                notes.append(note)
        return notes

    async def list_collections(self) -> list[Collection]:
        """Get all collections in the library, following pagination."""
        url = f"{self._library}/collections"
        all_collections = []
        start = 0
        limit = 100

        while True:
            resp = await self._request(
                "GET", url, params={"start": start, "limit": limit}
            )
            entries = resp.json()
            for entry in entries:
                data = entry["data"]
                all_collections.append(
                    Collection(
                        key=entry["key"],
                        name=data["name"],
                        parent_key=data.get("parentCollection") or None,
                    )
                )
            if len(entries) < limit:
                break
            start += limit

        return all_collections
