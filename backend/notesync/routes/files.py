"""
NoteSync Backend — Image File Route
=====================================

What:  Serves stored image objects behind the temporary URLs produced by
       LocalStorageGateway.resolve_url().
Why:   Images sit outside any web root. The signed query string is the only
       credential: whoever holds a URL may fetch that one object until it
       expires, which is what <img src> needs.
"""

import logging
import mimetypes

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse

from notesync.schemas.note import ErrorResponse
from notesync.services.storage_gateway import LocalStorageGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Files"])


def get_storage(request: Request) -> LocalStorageGateway:
    return request.app.state.storage


@router.get(
    "/files/{file_path:path}",
    summary="Serve a stored image through a temporary URL",
    responses={
        200: {"description": "Image file"},
        403: {"description": "Invalid or expired URL", "model": ErrorResponse},
        404: {"description": "Image not found", "model": ErrorResponse},
    },
)
async def serve_file(
    file_path: str,
    expires: int = Query(..., description="Expiry as Unix timestamp"),
    signature: str = Query(..., description="URL signature"),
    storage: LocalStorageGateway = Depends(get_storage),
) -> FileResponse:
    location = await storage.verify(file_path, expires, signature)
    media_type, _ = mimetypes.guess_type(location.name)
    return FileResponse(
        path=str(location),
        media_type=media_type or "application/octet-stream",
        # Private: the URL grants access to one user's image
        headers={"Cache-Control": "private, max-age=60"},
    )
