"""Command-line entry point: push Zotero items into a Craft collection.

    zotcraft-sync sync [QUERY] [--limit N] [--collection PATH] [--notes] [--open]
    zotcraft-sync collections
    zotcraft-sync delete ITEM_KEY_OR_CRAFT_ID
    zotcraft-sync serve
"""

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from zotcraft_sync.config import ConfigurationError, Settings
from zotcraft_sync.craft.client import CraftClient, build_deep_link, build_web_url
from zotcraft_sync.sync.collection_resolver import CollectionResolver
from zotcraft_sync.sync.engine import SyncEngine, SyncOutcome, SyncStatus
from zotcraft_sync.zotero.client import ZoteroAPIError
from zotcraft_sync.zotero.source import create_source

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _craft_client(settings: Settings) -> CraftClient:
    return CraftClient(
        settings.craft_api_base,
        settings.craft_collection_id,
        settings.craft_api_key,
    )


def _log_outcome(outcome: SyncOutcome) -> None:
    if outcome.status is SyncStatus.ERROR:
        logger.error("[%s] %s: %s", outcome.status.value, outcome.title, outcome.error_details)
        if outcome.payload:
            logger.debug("Payload for %s:\n%s", outcome.title, outcome.payload)
    else:
        logger.info(
            "[%s] %s%s", outcome.status.value, outcome.title,
            f": {outcome.details}" if outcome.details else "",
        )


def _open_target(settings: Settings, remote_id: str) -> str:
    if settings.craft_space_id:
        return build_deep_link(remote_id, settings.craft_space_id)
    logger.info("CRAFT_SPACE_ID not set; deep link may only open Craft")
    return build_web_url(remote_id, settings.craft_api_base) or build_deep_link(remote_id)


async def sync_command(settings: Settings, args: argparse.Namespace) -> int:
    source = create_source(settings)
    craft = _craft_client(settings)
    sync_notes = settings.sync_notes if args.notes is None else args.notes
    engine = SyncEngine(craft, source, sync_notes=sync_notes)
    collections = CollectionResolver(source)

    try:
        collection_key = await collections.resolve(
            args.collection or settings.zotero_collection_id
        )
        limit = args.limit or settings.max_items
        try:
            if args.query:
                items = await source.search(args.query, limit, collection_key)
            else:
                items = await source.list_recent(limit, collection_key)
        except (ZoteroAPIError, OSError) as exc:
            logger.error("Zotero search failed: %s", exc)
            return 1

        if not items:
            logger.info("No Zotero items matched")
            return 0

        report = await engine.sync_items(items)
        for outcome in report.outcomes:
            _log_outcome(outcome)
        logger.info(report.summary)

        if args.open and len(items) == 1:
            synced = [o for o in report.outcomes if o.remote_id]
            if synced:
                print(_open_target(settings, synced[0].remote_id))

        return 1 if report.count(SyncStatus.ERROR) else 0
    finally:
        await source.close()
        await craft.close()


async def collections_command(settings: Settings, args: argparse.Namespace) -> int:
    source = create_source(settings)
    try:
        resolver = CollectionResolver(source)
        collections = await resolver.ensure_cache()
        if not resolver.filtering_enabled:
            logger.error(resolver.warning)
            return 1
        for collection in collections:
            print(f"{collection.key}\t{collection.name}")
        return 0
    finally:
        await source.close()


async def delete_command(settings: Settings, args: argparse.Namespace) -> int:
    craft = _craft_client(settings)
    engine = SyncEngine(craft)
    try:
        await engine.load()
        remote_id = engine.lookup(args.target) or args.target
        outcome = await engine.delete_item(remote_id, title=args.target)
        _log_outcome(outcome)
        return 1 if outcome.status is SyncStatus.ERROR else 0
    except Exception:
        logger.exception("Delete failed for %s", args.target)
        return 1
    finally:
        await craft.close()


COMMANDS = {
    "sync": sync_command,
    "collections": collections_command,
    "delete": delete_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zotcraft-sync",
        description="Sync Zotero items into a Craft collection.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Create or update Craft items for Zotero items")
    sync.add_argument("query", nargs="?", default="", help="Search terms; .tag filters by tag")
    sync.add_argument("--limit", type=int, help="Maximum number of items (default MAX_ITEMS)")
    sync.add_argument("--collection", help="Zotero collection key or path, e.g. 'Thesis / Ch1'")
    sync.add_argument(
        "--notes",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Append Zotero notes as blocks (default SYNC_NOTES)",
    )
    sync.add_argument(
        "--open", action="store_true", help="Print a link to the synced item (single result)"
    )

    sub.add_parser("collections", help="List Zotero collections")

    delete = sub.add_parser("delete", help="Delete a synced item from Craft")
    delete.add_argument("target", help="Zotero item key or Craft item id")

    sub.add_parser("serve", help="Run the HTTP API")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error("Invalid configuration:\n%s", exc)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("zotcraft_sync.main:app", host=settings.host, port=settings.port)
        return

    try:
        code = asyncio.run(COMMANDS[args.command](settings, args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
