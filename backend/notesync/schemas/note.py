"""
NoteSync Backend — Domain Types & API Schemas
===============================================

What:  Pydantic models for the note domain (Note, ImageRef, ImageUpload) and
       for the HTTP contract (NoteResponse, NoteListResponse, ErrorResponse).
Why:   The synchronizer and both gateways exchange `Note` objects; the routes
       translate them into response models.

ImageRef — one field, four phases, each with its own type:
    None                      the note has no image
    PendingUpload(file_name)  record created, bytes not yet confirmed in storage
    StoredImage(file_name)    record read back from the record service; the
                              object lives at media/<owner>/<note id>/<file_name>
    ResolvedImage(path, url)  display-only temporary URL, never persisted

    The `kind` field discriminates the variants, so a resolved URL can never be
    mistaken for a file name or a path.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ══════════════════════════════════════════════════════════════════════════
# Domain Types — exchanged between synchronizer and gateways
# ══════════════════════════════════════════════════════════════════════════


class PendingUpload(BaseModel):
    """Image named on the record whose bytes have not been confirmed stored."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["pending"] = "pending"
    file_name: str


class StoredImage(BaseModel):
    """Image reference as persisted on the note record."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["stored"] = "stored"
    file_name: str


class ResolvedImage(BaseModel):
    """Temporary access URL for a stored image. View-only."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["resolved"] = "resolved"
    path: str
    url: str


ImageRef = Annotated[
    Union[PendingUpload, StoredImage, ResolvedImage],
    Field(discriminator="kind"),
]


class Note(BaseModel):
    """
    One user note.

    `id` is None until the record service assigns one. Notes are immutable;
    the synchronizer derives enriched copies with `model_copy`.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str
    description: str
    image: Optional[ImageRef] = None

    @property
    def is_saved(self) -> bool:
        return self.id is not None


class ImageUpload(BaseModel):
    """Raw image file taken from a form submission."""
    model_config = ConfigDict(frozen=True)

    file_name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


# ══════════════════════════════════════════════════════════════════════════
# Response Models — What the API returns to clients
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """
    What:  Representation of one note for display.
    Who:   Returned by POST /api/notes and as items of GET /api/notes.

    `image_url` is a convenience copy of `image.url` when the image resolved,
    so clients can fill an <img> src without inspecting the variant.
    """
    id: str = Field(description="Note identifier")
    name: str = Field(description="Short note title")
    description: str = Field(description="Note body")
    image: Optional[ImageRef] = Field(
        default=None,
        description="Image reference; 'resolved' carries a temporary URL",
    )
    image_url: Optional[str] = Field(
        default=None,
        description="Temporary image URL, or null when the note shows no image",
    )

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        image_url = note.image.url if isinstance(note.image, ResolvedImage) else None
        return cls(
            id=note.id,
            name=note.name,
            description=note.description,
            image=note.image,
            image_url=image_url,
        )


class NoteListResponse(BaseModel):
    """
    What:  The caller's full note sequence after a refresh.
    Why no pagination: note sets are small; the whole sequence is re-read on
    every refresh.
    """
    notes: List[NoteResponse] = Field(description="Notes in record service order")
    total_count: int = Field(description="Number of notes returned")


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "Note name is required",
            "details": {"field": "name"},
            "request_id": "550e8400"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Record service connectivity: connected, disconnected")
    storage: str = Field(description="Object storage status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
