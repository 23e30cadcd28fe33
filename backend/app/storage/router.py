"""FastAPI router serving blobs written by the local blob store."""
import logging
import mimetypes

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.requests import HTTPConnection

from .local import LocalBlobStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["storage"])

_HTTP_SCHEMES = {"ws": "http", "wss": "https"}


def public_base_url(connection: HTTPConnection) -> str:
    """Base URL clients should use to reach this service.

    ``server.public_base_url`` wins; otherwise the URL the request came in on
    is used, with WebSocket schemes mapped to their HTTP counterparts.
    """
    configured = connection.app.state.config.server.public_base_url
    if configured:
        return configured.rstrip("/")
    base = connection.base_url
    base = base.replace(scheme=_HTTP_SCHEMES.get(base.scheme, base.scheme))
    return str(base).rstrip("/")


@router.get("/blobs/{key:path}")
async def download_blob(request: Request, key: str):
    """Serve a file stored by LocalBlobStore.

    Raises:
        HTTPException 404: If the local backend is not active or the key is unknown
    """
    store = request.app.state.blob_store
    if not isinstance(store, LocalBlobStore):
        raise HTTPException(status_code=404, detail="File not found")

    file_path = store.resolve_key(key)
    if file_path is None:
        raise HTTPException(status_code=404, detail="File not found")

    media_type, _ = mimetypes.guess_type(file_path.name)
    return FileResponse(
        path=file_path,
        media_type=media_type or "application/octet-stream",
    )
