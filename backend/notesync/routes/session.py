"""
NoteSync Backend — Session Route
==================================

What:  POST /api/session/sign-out.
Why:   Sign-out is the one action of the authentication collaborator this
       service takes part in: the caller's in-memory note sequence is dropped
       so nothing of it outlives the session. Token revocation happens at the
       identity provider.
"""

import logging

from fastapi import APIRouter, Depends, Response

from notesync.auth import get_current_identity, get_registry
from notesync.schemas.note import ErrorResponse
from notesync.services.sessions import SynchronizerRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["Session"])


@router.post(
    "/sign-out",
    status_code=204,
    responses={401: {"description": "No signed-in user", "model": ErrorResponse}},
    summary="Discard the caller's note session",
)
async def sign_out(
    identity: str = Depends(get_current_identity),
    registry: SynchronizerRegistry = Depends(get_registry),
) -> Response:
    registry.discard(identity)
    return Response(status_code=204)
