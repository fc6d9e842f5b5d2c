"""
NoteSync Backend — Authentication Collaborator
================================================

What:  FastAPI dependencies that supply the signed-in user's identity and
       the note session belonging to it.
Why:   Sign-in happens upstream (identity provider + authenticating proxy).
       This service only needs the stable identity string, which becomes the
       owner of every record and the second segment of every image path.
How:   The proxy forwards the identity in the header named by
       settings.identity_header. A missing or malformed identity is a 401.
"""

from fastapi import Depends, Request

from notesync.config import settings
from notesync.exceptions import AuthenticationError
from notesync.services.note_synchronizer import NoteSynchronizer
from notesync.services.sessions import SynchronizerRegistry


def get_current_identity(request: Request) -> str:
    """Read the caller's identity from the request headers."""
    identity = request.headers.get(settings.identity_header, "").strip()
    if not identity:
        raise AuthenticationError()
    # The identity becomes a path segment
    if "/" in identity:
        raise AuthenticationError(
            message="The supplied identity is not valid",
            context={"reason": "delimiter"},
        )
    return identity


def get_registry(request: Request) -> SynchronizerRegistry:
    return request.app.state.registry


def get_synchronizer(
    identity: str = Depends(get_current_identity),
    registry: SynchronizerRegistry = Depends(get_registry),
) -> NoteSynchronizer:
    """The caller's note session."""
    return registry.get(identity)
