"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from zotcraft_sync.api import handler as api_handler
from zotcraft_sync.api.handler import router as api_router
from zotcraft_sync.config import Settings
from zotcraft_sync.craft.client import CraftClient
from zotcraft_sync.sync.collection_resolver import CollectionResolver
from zotcraft_sync.sync.engine import SyncEngine
from zotcraft_sync.zotero.source import create_source

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Initialize clients
    source = create_source(settings)
    craft_client = CraftClient(
        settings.craft_api_base,
        settings.craft_collection_id,
        settings.craft_api_key,
    )
    collection_resolver = CollectionResolver(source)
    sync_engine = SyncEngine(craft_client, source, sync_notes=settings.sync_notes)

    # Inject dependencies into the API handler
    api_handler.configure(settings, source, sync_engine, collection_resolver)

    logger.info("Zotero → Craft sync server started (%s mode)", settings.zotero_mode)
    yield

    # Cleanup
    await source.close()
    await craft_client.close()
    logger.info("Zotero → Craft sync server stopped")


app = FastAPI(title="Zotero Craft Sync", lifespan=lifespan)
app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "zotcraft_sync.main:app",
        host=settings.host,
        port=settings.port,
    )
