"""FastAPI router for share-link upload and viewing.

Endpoints:
    - POST /upload: Upload up to 50 files, get back a single share link
    - GET /file/{folder_id}: Viewer page (404 unknown, 410 expired)
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from app.storage.errors import UploadFailedError
from app.storage.router import public_base_url

from .errors import BatchTooLargeError, EmptyBatchError
from .registry import LinkRegistry
from .schemas import ResolveStatus, UploadLinkResponse, retention_days_from_label
from .service import LinkUploadService, UploadItem
from .viewer import render_folder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["links"])

# Services are created once in create_app() and stored on app.state.
# Tests may override these via app.dependency_overrides.


def get_link_service(request: Request) -> LinkUploadService:
    return request.app.state.link_service


def get_link_registry(request: Request) -> LinkRegistry:
    return request.app.state.link_registry


def build_link(request: Request, folder_id: str) -> str:
    """Generate the absolute viewer URL for a folder."""
    return f"{public_base_url(request)}/file/{folder_id}"


@router.post("/upload", response_model=UploadLinkResponse)
async def upload_batch(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    title: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    service: LinkUploadService = Depends(get_link_service),
):
    """Upload a batch of files and return one expiring share link.

    Args:
        files: Files to share (1-50)
        title: Folder title shown on the viewer page
        duration: Retention selector: "1 Day", "3 Days"; anything else is 7 days

    Returns:
        UploadLinkResponse with the viewer link

    Raises:
        400: If no files (or too many files) were sent
        500: If any file fails to upload
    """
    try:
        items = [
            UploadItem(
                content=await f.read(),
                filename=f.filename or "unnamed",
                mime_type=f.content_type or "application/octet-stream",
            )
            for f in files or []
        ]
        folder_id = await service.submit_batch(
            title,
            retention_days_from_label(duration),
            items,
            base_url=public_base_url(request),
        )
    except EmptyBatchError as e:
        logger.info(f"[Links] Upload rejected: {e.message}")
        return JSONResponse({"error": "No files uploaded"}, status_code=e.status_code)
    except BatchTooLargeError as e:
        logger.info(f"[Links] Upload rejected: {e.message}")
        return JSONResponse({"error": "Too many files"}, status_code=e.status_code)
    except UploadFailedError:
        return JSONResponse({"error": "Upload failed"}, status_code=500)
    except Exception as e:
        logger.exception(f"[Links] Unexpected upload failure: {e}")
        return JSONResponse({"error": "Upload failed"}, status_code=500)

    return UploadLinkResponse(link=build_link(request, folder_id))


@router.get("/file/{folder_id}", response_class=HTMLResponse)
async def view_folder(
    folder_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
):
    """Render the viewer page for a folder.

    Returns:
        404 text if the id is unknown, 410 text if the link has expired,
        otherwise the rendered HTML page
    """
    resolution = registry.resolve(folder_id)

    if resolution.status == ResolveStatus.NOT_FOUND:
        return PlainTextResponse("Link not found", status_code=404)
    if resolution.status == ResolveStatus.EXPIRED:
        return PlainTextResponse("Link expired", status_code=410)

    return HTMLResponse(content=render_folder(resolution.record))
