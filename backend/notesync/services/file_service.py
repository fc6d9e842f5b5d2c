"""
NoteSync Backend — Image Upload Validation
============================================

What:  Checks an image submitted with a new note before anything is written.
Why:   A rejected file must fail the create request before the note record
       exists; otherwise the record would point at an image that never arrives.
How:   Extension check, size check, then MIME sniffing of the file header with
       python-magic. The result is an ImageUpload handed to the synchronizer.
Who:   Called by the POST /api/notes route.

Validation order (cheapest first):
    1. Extension — no file reading needed
    2. Size      — byte count against settings.max_file_size
    3. MIME type — libmagic reads the first bytes (PNG or JPEG signatures)
"""

import logging
from pathlib import Path
from typing import Optional

from notesync.config import settings
from notesync.exceptions import ValidationError
from notesync.schemas.note import ImageUpload

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Same set the note form offers: image/png, image/jpeg
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg"}


class FileService:
    """Validates note images. Stateless apart from the size limit."""

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_extension(self, filename: str) -> str:
        """
        Returns: Normalized extension (lowercase with dot).
        Raises:  ValidationError if extension is not allowed.
        """
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, actual_size: int) -> None:
        """Rejects empty files and files above the configured maximum."""
        if actual_size == 0:
            raise ValidationError(message="The image file is empty.", field="image")

        if actual_size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=(
                    f"File size ({actual_size / (1024 * 1024):.1f}MB) is too large. "
                    f"Maximum is {max_mb:.0f}MB."
                ),
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Determine the real file type from its header bytes.

        Returns: Detected MIME type string (e.g. "image/jpeg").
        Raises:  ValidationError if the content is not PNG or JPEG.
        """
        import magic

        mime_type = magic.from_buffer(file_content, mime=True)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a valid image (PNG or JPEG)."
                ),
                field="image",
                context={"detected_mime": mime_type, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return mime_type

    def validate(self, filename: str, content: bytes) -> ImageUpload:
        """Run all checks and return the upload ready for the synchronizer."""
        self.validate_extension(filename)
        self.validate_size(len(content))
        mime_type = self.validate_mime_type(content)
        logger.debug("Image accepted: %s (%s, %d bytes)", filename, mime_type, len(content))
        return ImageUpload(file_name=filename, content=content, content_type=mime_type)


file_service = FileService()
