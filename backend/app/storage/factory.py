"""Build the configured BlobStore from application settings."""
import logging

from app.config import AppSettings

from .blob_store import BlobStore
from .local import LocalBlobStore
from .s3 import S3BlobStore

logger = logging.getLogger(__name__)


def create_blob_store(config: AppSettings) -> BlobStore:
    """Return a LocalBlobStore or S3BlobStore according to ``blob_store.backend``."""
    settings = config.blob_store
    secrets = config.secrets.blob_store

    if settings.backend == "s3":
        store = S3BlobStore(
            bucket=settings.bucket or "",
            access_key=secrets.access_key,
            access_secret=secrets.access_secret,
            account_id=secrets.account_id,
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
            public_base_url=settings.public_base_url,
        )
        logger.info("Blob store ready: backend=s3 bucket=%s", settings.bucket)
        return store

    public_base_url = settings.public_base_url or config.server.public_base_url
    store = LocalBlobStore(root=settings.local_dir, public_base_url=public_base_url)
    logger.info("Blob store ready: backend=local root=%s", store.root)
    return store
