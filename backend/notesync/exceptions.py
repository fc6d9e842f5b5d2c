"""
NoteSync Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for every failure the core can report.
Why:   Callers must be able to tell a bad form submission from a missing id
       from a failing remote service. Each class maps to one HTTP status.
How:   Each exception carries a user-facing message and a context dict.
       Global exception handlers (registered in main.py) turn them into
       structured JSON error responses.
Who:   Raised by the gateways, the path deriver and the synchronizer.

Exception Hierarchy:
    NoteSyncError (base)
    ├── ValidationError       → 400 Bad Request (missing name/description, bad file)
    ├── AuthenticationError   → 401 Unauthorized (no caller identity)
    ├── AccessDeniedError     → 403 Forbidden (bad or expired image URL)
    ├── NotFoundError         → 404 Not Found
    ├── PreconditionError     → 409 Conflict (delete of an unsaved note)
    ├── RemoteReadError       → 502 Bad Gateway (list / resolve failures)
    └── RemoteWriteError      → 502 Bad Gateway (create / upload / delete failures)
        └── UploadError       → 502 Bad Gateway (upload failed after record create)
"""

from typing import Any, Dict, Optional


class NoteSyncError(Exception):
    """
    Base exception for all NoteSync application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; only selected keys are returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteSyncError):
    """
    Raised when caller input fails validation, before any remote call.

    When:    Empty note name/description, unsupported image, malformed path segment.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(NoteSyncError):
    """Raised when the request carries no usable user identity. HTTP 401."""

    def __init__(
        self,
        message: str = "Sign in to access your notes",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccessDeniedError(NoteSyncError):
    """
    Raised when a temporary image URL fails verification.

    When:    Signature mismatch or the URL's validity window has passed.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "This image link is invalid or has expired",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NoteSyncError):
    """
    Raised when a requested resource does not exist.

    When:    Deleting a note id the caller does not own, serving a missing image.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PreconditionError(NoteSyncError):
    """
    Raised when an operation is attempted on a note in the wrong state.

    When:    delete() on a note that has no assigned id yet.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The note is not in a state that allows this operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RemoteReadError(NoteSyncError):
    """
    Raised when reading from the record or storage service fails.

    A failure to list records surfaces to the caller. A failure to resolve a
    single note's image URL is isolated by the synchronizer and never reaches
    the caller.
    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "Could not read from a backing service. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RemoteWriteError(NoteSyncError):
    """
    Raised when writing to the record or storage service fails.

    Not retried automatically.
    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "Could not write to a backing service. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UploadError(RemoteWriteError):
    """
    Raised when an image upload fails after its note record was created.

    Context keys:
        note_id:            id of the record created for this upload
        path:               storage path the upload targeted
        record_rolled_back: True if the record was deleted again, False if
                            the compensating delete failed and the record
                            still references an image that was never stored
    """

    def __init__(
        self,
        note_id: str,
        path: str,
        record_rolled_back: bool,
        context: Optional[Dict[str, Any]] = None,
    ):
        if record_rolled_back:
            message = "The image could not be uploaded, so the note was not saved."
        else:
            message = (
                "The image could not be uploaded and the note was saved without it. "
                "Delete the note and try again."
            )
        ctx = context or {}
        ctx.update(note_id=note_id, path=path, record_rolled_back=record_rolled_back)
        super().__init__(message=message, context=ctx)
        self.note_id = note_id
        self.path = path
        self.record_rolled_back = record_rolled_back
