"""
NoteSync Backend — Image Path Derivation
==========================================

What:  Maps (user identity, note id, file name) to the storage path of a note's image.
Why:   The path is computed twice, at upload time and at every URL resolution,
       so both sides must agree without storing the path anywhere.
How:   Joins a fixed namespace, the identity, the note id and the file name with "/".

Path layout:
    media/<identity>/<note id>/<file name>
    e.g. media/us-east-1:7f3a.../0b9e4c1e-.../list.png

    The owner's identity is the second segment, so an object uploaded for one
    user can never sit under another user's prefix.
"""

from pathlib import PurePosixPath

from notesync.exceptions import ValidationError

DELIMITER = "/"
DEFAULT_NAMESPACE = "media"


def _check_segment(value: str, field: str) -> None:
    if not value:
        raise ValidationError(message=f"{field} must not be empty", field=field)
    if DELIMITER in value:
        raise ValidationError(
            message=f"{field} must not contain '{DELIMITER}'",
            field=field,
            context={"value": value},
        )


def derive_path(
    identity: str,
    note_id: str,
    file_name: str,
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """
    Build the storage path of a note's image.

    `file_name` may be empty when no upload follows; the result then ends
    with the delimiter and cannot be uploaded to.

    Raises:
        ValidationError: empty identity or note id, or a segment that would
                         change the number of path levels.
    """
    _check_segment(namespace, "namespace")
    _check_segment(identity, "identity")
    _check_segment(note_id, "note_id")

    if file_name:
        if PurePosixPath(file_name).name != file_name or file_name in (".", ".."):
            raise ValidationError(
                message="Image file name must not contain directory components",
                field="file_name",
                context={"file_name": file_name},
            )

    return DELIMITER.join((namespace, identity, note_id, file_name))
