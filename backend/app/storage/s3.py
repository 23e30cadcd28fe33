"""S3-compatible blob store.

Uses ``boto3``'s managed ``upload_file`` so large files are sent in parts.
Works against AWS S3 and any S3-compatible provider (R2, MinIO, …) through
``endpoint_url``.

Public URL resolution
---------------------
1. ``public_base_url`` when configured (CDN or custom domain);
2. ``endpoint_url/bucket`` for custom endpoints (path-style);
3. ``https://{bucket}.s3.{region}.amazonaws.com`` otherwise.
"""
import logging
from pathlib import Path
from typing import Optional

import boto3

from .blob_store import (
    BlobStore,
    ResourceHint,
    StoredBlob,
    classify_resource,
    make_object_key,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class S3BlobStore(BlobStore):
    """Blob store backed by an S3-compatible bucket.

    Args:
        bucket:          Target bucket name.
        access_key:      Access key id.  ``None`` → default credential chain.
        access_secret:   Secret access key.
        account_id:      Provider account id, substituted into
                         ``endpoint_url`` when it contains ``{account_id}``.
        region_name:     Bucket region.  Defaults to ``us-east-1``.
        endpoint_url:    Custom endpoint for S3-compatible providers.
        public_base_url: Base URL that objects are publicly reachable under.
    """

    def __init__(
        self,
        bucket: str,
        access_key: Optional[str] = None,
        access_secret: Optional[str] = None,
        account_id: Optional[str] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3BlobStore requires a bucket name")
        self._bucket = bucket
        self._access_key = access_key
        self._secret_key = access_secret
        self._region = region_name or DEFAULT_REGION
        if endpoint_url and "{account_id}" in endpoint_url:
            endpoint_url = endpoint_url.format(account_id=account_id or "")
        self._endpoint_url = endpoint_url
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._client: Optional[object] = None

    @property
    def name(self) -> str:
        return "s3"

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _get_client(self) -> object:
        """Return a cached boto3 s3 client."""
        if self._client is None:
            kwargs: dict = {"region_name": self._region}
            if self._access_key and self._secret_key:
                kwargs["aws_access_key_id"]     = self._access_key
                kwargs["aws_secret_access_key"] = self._secret_key
            if self._endpoint_url:
                kwargs["endpoint_url"] = self._endpoint_url
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    # -----------------------------------------------------------------------
    # BlobStore implementation
    # -----------------------------------------------------------------------

    def upload_sync(
        self,
        path: Path,
        *,
        hint: ResourceHint,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredBlob:
        key = make_object_key(folder, filename)
        extra_args = {
            "ContentType": content_type,
            "Metadata": {"resource-hint": hint.value},
        }

        logger.debug(
            "[storage/s3] uploading %s to s3://%s/%s (hint=%s)",
            path, self._bucket, key, hint.value,
        )
        self._get_client().upload_file(
            str(path), self._bucket, key, ExtraArgs=extra_args,
        )
        return StoredBlob(
            url=self.public_url(key),
            kind=classify_resource(content_type, hint),
            key=key,
        )
