"""DropLink Backend Application.

This is the main entry point for the DropLink backend service.
DropLink turns a batch of uploaded files into a single expiring share link
and relays chat messages between connections in ephemeral rooms.

Modules:
    - links: Link registry, upload orchestration and the viewer page
    - chat: WebSocket room relay and chat file uploads
    - storage: Blob store back-ends (local disk, S3-compatible) and staging
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.chat.relay import RoomRelay
from app.chat.router import router as chat_router
from app.chat.uploads import ChatUploadService
from app.config import AppSettings, get_config
from app.links.registry import LinkRegistry
from app.links.router import router as links_router
from app.links.service import LinkUploadService
from app.storage.blob_store import BlobStore
from app.storage.factory import create_blob_store
from app.storage.router import router as storage_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# botocore logs every signed request; urllib3 logs every connection.
for _noisy in (
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
    "urllib3.connectionpool",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppSettings = app.state.config
    registry: LinkRegistry = app.state.link_registry

    interval = config.links.sweep_interval_seconds
    if interval > 0:
        await registry.start_sweeper(interval)
    else:
        logger.info("Link sweep disabled; expiry is enforced on read only.")

    logger.info(
        f"DropLink ready on http://{config.server.host}:{config.server.port} "
        f"(blob store: {app.state.blob_store.name})"
    )

    yield  # Application runs here

    # Shutdown
    await registry.stop_sweeper()
    logger.info("Application shutdown complete")


def create_app(
    config: Optional[AppSettings] = None,
    blob_store: Optional[BlobStore] = None,
    registry: Optional[LinkRegistry] = None,
    relay: Optional[RoomRelay] = None,
) -> FastAPI:
    """Build the FastAPI application and its shared state.

    Every collaborator can be injected so tests get a fresh registry and
    relay and a fake blob store.
    """
    config = config or get_config()

    # Apply configured log level to root logger.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)

    app = FastAPI(
        title="DropLink API",
        description="Expiring share links and ephemeral chat rooms",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    blob_store = blob_store or create_blob_store(config)
    registry = registry or LinkRegistry(default_title=config.links.default_title)
    relay = relay or RoomRelay()

    app.state.config = config
    app.state.blob_store = blob_store
    app.state.link_registry = registry
    app.state.relay = relay
    app.state.link_service = LinkUploadService(
        registry,
        blob_store,
        tmp_dir=config.uploads.tmp_dir,
        folder=config.blob_store.folder,
        max_files=config.uploads.max_files,
    )
    app.state.chat_uploads = ChatUploadService(
        relay,
        blob_store,
        tmp_dir=config.uploads.tmp_dir,
        folder=config.blob_store.chat_folder,
    )

    # Register all routers
    app.include_router(links_router)
    app.include_router(chat_router)
    app.include_router(storage_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _config = get_config()
    uvicorn.run(app, host=_config.server.host, port=_config.server.port)
