"""
NoteSync Backend — Notes Route Handlers
=========================================

What:  GET /api/notes (refresh), POST /api/notes (create), DELETE /api/notes/{id}.
Why:   The presentation boundary of the synchronizer: raw form data in,
       enriched note sequence out.
How:   Each handler resolves the caller's NoteSynchronizer through the
       authentication dependency and delegates to one synchronizer operation.

Caching Strategy:
    No caching anywhere: responses embed temporary image URLs that are
    re-signed on every refresh.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from notesync.auth import get_synchronizer
from notesync.exceptions import NotFoundError
from notesync.schemas.note import (
    ErrorResponse,
    ImageUpload,
    NoteListResponse,
    NoteResponse,
)
from notesync.services.file_service import file_service
from notesync.services.note_synchronizer import NoteSynchronizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])

NO_STORE = "no-store"


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={
        401: {"description": "No signed-in user", "model": ErrorResponse},
        502: {"description": "Record service unavailable", "model": ErrorResponse},
    },
    summary="List the caller's notes",
    description=(
        "Re-reads the caller's notes from the record service and resolves a "
        "temporary URL for every attached image. A note whose image cannot be "
        "resolved is returned without an image."
    ),
)
async def list_notes(
    response: Response,
    synchronizer: NoteSynchronizer = Depends(get_synchronizer),
) -> NoteListResponse:
    notes = await synchronizer.refresh()
    response.headers["Cache-Control"] = NO_STORE
    return NoteListResponse(
        notes=[NoteResponse.from_note(note) for note in notes],
        total_count=len(notes),
    )


@router.post(
    "/notes",
    status_code=201,
    response_model=NoteResponse,
    responses={
        400: {"description": "Missing name/description or unsupported image", "model": ErrorResponse},
        401: {"description": "No signed-in user", "model": ErrorResponse},
        502: {"description": "Record or storage service failure", "model": ErrorResponse},
    },
    summary="Create a note with an optional image",
    description=(
        "Accepts the note form (name, description, optional PNG/JPEG image). "
        "The record is created first; the image is uploaded under the new "
        "note's id; the note list is then refreshed."
    ),
)
async def create_note(
    response: Response,
    name: str = Form(default="", description="Note name"),
    description: str = Form(default="", description="Note description"),
    image: Optional[UploadFile] = File(default=None, description="Optional PNG or JPEG image"),
    synchronizer: NoteSynchronizer = Depends(get_synchronizer),
) -> NoteResponse:
    upload: Optional[ImageUpload] = None
    try:
        # Browsers send an empty file part when no file was chosen
        if image is not None and image.filename:
            content = await image.read()
            logger.info(
                "Received note image: filename=%s, size=%d bytes",
                image.filename,
                len(content),
            )
            upload = file_service.validate(image.filename, content)
    finally:
        if image is not None:
            await image.close()

    note = await synchronizer.create(name=name, description=description, image=upload)
    response.headers["Cache-Control"] = NO_STORE
    return NoteResponse.from_note(note)


@router.delete(
    "/notes/{note_id}",
    status_code=204,
    responses={
        401: {"description": "No signed-in user", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        502: {"description": "Record service failure", "model": ErrorResponse},
    },
    summary="Delete a note",
    description=(
        "Deletes the note record and refreshes the caller's note list. "
        "The stored image object is not deleted."
    ),
)
async def delete_note(
    note_id: str,
    synchronizer: NoteSynchronizer = Depends(get_synchronizer),
) -> Response:
    note = synchronizer.get(note_id)
    if note is None:
        # The session may not have listed its notes yet
        await synchronizer.refresh()
        note = synchronizer.get(note_id)
    if note is None:
        raise NotFoundError(resource="note", resource_id=note_id)

    await synchronizer.delete(note)
    return Response(status_code=204)
