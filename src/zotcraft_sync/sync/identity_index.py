"""In-memory map from Zotero link to Craft record id."""

import logging

from zotcraft_sync.utils.zotero_uri import find_zotero_link

logger = logging.getLogger(__name__)


class IdentityIndex:
    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._by_link: dict[str, str] = dict(entries or {})

    @classmethod
    def from_remote_items(cls, items: list[dict]) -> "IdentityIndex":
        """Scan each record's property values for a zotero:// link."""
        index = cls()
        for item in items:
            link = find_zotero_link(item.get("properties") or {})
            if not link or not item.get("id"):
                continue
            if link in index._by_link:
                logger.warning(
                    "Craft items %s and %s both link to %s; keeping the first",
                    index._by_link[link], item["id"], link,
                )
                continue
            index._by_link[link] = item["id"]
        return index

    def __len__(self) -> int:
        return len(self._by_link)

    def __contains__(self, link: str) -> bool:
        return link in self._by_link

    def get(self, link: str) -> str | None:
        return self._by_link.get(link)

    def add(self, link: str, remote_id: str) -> None:
        self._by_link[link] = remote_id

    def remove_remote_id(self, remote_id: str) -> list[str]:
        """Drop every link pointing at ``remote_id``; returns the removed links."""
        removed = [link for link, rid in self._by_link.items() if rid == remote_id]
        for link in removed:
            del self._by_link[link]
        return removed
