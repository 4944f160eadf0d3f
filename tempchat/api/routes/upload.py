# tempchat/api/routes/upload.py

import asyncio

from fastapi import APIRouter, HTTPException, Request

from tempchat.api.routes.utils import to_http_error
from tempchat.core import state
from tempchat.core.config import settings
from tempchat.core.errors import RoomError
from tempchat.models.models import UploadResponse

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, filename: str = ""):
    """
    Store the raw request body as a file and return its public URL.

    Usage:
        POST /upload?filename=report.pdf   (body: file bytes)

    The returned url goes into a file message posted to the room.

    Raises:
        HTTPException: 400 without filename, 413 over MAX_UPLOAD_BYTES,
                       502 if the blob store write fails
    """
    if not filename.strip():
        raise HTTPException(status_code=400, detail="Filename is required")

    data = await request.body()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        url = await asyncio.to_thread(state.blob_store.put, filename, data)
    except RoomError as e:
        raise to_http_error(e)

    return UploadResponse(
        url=url,
        pathname=url.split("/files/", 1)[-1],
        size=len(data),
        content_type=request.headers.get("content-type"),
    )
