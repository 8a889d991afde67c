"""
Cook Journal Backend — Upload Route Handlers
==============================================

What:  POST /api/uploads (multipart field "file") and GET /uploads/{filename}.
Why:   Clients upload a picture first, then embed the returned URL in a
       recipe or attempt payload.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import FileResponse

from cookjournal.config import settings
from cookjournal.schemas.common import ErrorResponse
from cookjournal.schemas.recipe import UploadResponse
from cookjournal.services.upload_service import upload_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


@router.post(
    "/api/uploads",
    response_model=UploadResponse,
    responses={
        400: {"description": "No file, not an image, or too large", "model": ErrorResponse},
        500: {"description": "Upload failed", "model": ErrorResponse},
    },
    summary="Upload one image and get its normalized WebP URL",
)
async def upload_image(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
) -> UploadResponse:
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    if file is not None:
        content = await upload_service.read_bounded(file)
        content_type = file.content_type

    # Proxies may set Host to the public name; the URL follows whatever arrived
    base_url = f"{request.url.scheme}://{request.headers.get('host', request.url.netloc)}"
    url = await upload_service.upload(content, content_type, base_url)
    return UploadResponse(url=url)


@router.get(
    settings.upload_url_prefix.rstrip("/") + "/{filename}",
    response_class=FileResponse,
    responses={404: {"description": "No such upload", "model": ErrorResponse}},
    summary="Serve a stored upload",
)
async def serve_upload(filename: str) -> FileResponse:
    path = upload_service.resolve_path(filename)
    return FileResponse(
        path,
        media_type="image/webp",
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
