"""
NoteSync Backend — Note Synchronizer (Note/Image Consistency Orchestrator)
===========================================================================

What:  Keeps a user's note records and their stored images in agreement across
       refresh, create and delete, and maintains the session's displayed note
       sequence.
Why:   Each user-visible operation spans several calls to two independent
       services. The ordering between those calls is the whole contract.
How:   Composes a RecordGateway, a StorageGateway and the path deriver. All
       three collaborators and the user identity are constructor arguments.

Orchestration Flow (create with image):
    ┌──────────┐    ┌──────────────┐    ┌─────────────┐    ┌──────────────┐
    │ Validate │───▶│ Record       │───▶│ Storage     │───▶│ refresh()    │
    │ fields   │    │ create (id)  │    │ upload      │    │ list+resolve │
    └──────────┘    └──────────────┘    └─────────────┘    └──────────────┘

    The path embeds the id assigned by the record service, so the upload can
    only start after the record exists. If the upload fails, the record is
    deleted again and UploadError reports whether that compensation worked.

Concurrency:
    - create() and delete() of one session are serialized by an asyncio.Lock.
    - refresh() is not locked. Every refresh takes a sequencing token when it
      starts and publishes its result only if no later-started refresh has
      published first, so a slow stale refresh cannot overwrite a newer one.
    - URL resolutions inside one refresh run concurrently; the published order
      is the record service's order, not completion order.
    - Every remote call is bounded by `call_timeout` seconds.

Stored images are never deleted. delete() removes the record only; the
object stays at media/<identity>/<note id>/<file name>.
"""

import asyncio
import itertools
import logging
from typing import Awaitable, List, Optional, Sequence, Tuple, Type, TypeVar

from notesync.exceptions import (
    NoteSyncError,
    PreconditionError,
    RemoteReadError,
    RemoteWriteError,
    UploadError,
    ValidationError,
)
from notesync.schemas.note import ImageUpload, Note, ResolvedImage, StoredImage
from notesync.services.paths import DEFAULT_NAMESPACE, derive_path
from notesync.services.record_gateway import RecordGateway
from notesync.services.storage_gateway import StorageGateway

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NoteSynchronizer:
    """
    Note operations for one signed-in user.

    Responsibilities:
        - refresh(): list records and resolve display URLs for their images
        - create():  record first, then image upload, then refresh
        - delete():  remove the record, then refresh
        - notes:     the most recently published note sequence

    Error Handling Strategy:
        Validation and precondition failures are raised before any remote
        call. Remote failures propagate as RemoteReadError / RemoteWriteError.
        The only failure that is absorbed is a single note's URL resolution
        during refresh: that note is shown without an image.
    """

    def __init__(
        self,
        records: RecordGateway,
        storage: StorageGateway,
        identity: str,
        call_timeout: Optional[float] = None,
        namespace: str = DEFAULT_NAMESPACE,
    ):
        if not identity:
            raise ValidationError(message="A user identity is required", field="identity")
        self._records = records
        self._storage = storage
        self.identity = identity
        self.call_timeout = call_timeout
        self.namespace = namespace

        self._notes: Tuple[Note, ...] = ()
        self._mutation_lock = asyncio.Lock()
        self._tokens = itertools.count(1)
        self._published_token = 0

    @property
    def notes(self) -> Tuple[Note, ...]:
        """The displayed note sequence. Only this class replaces it."""
        return self._notes

    @property
    def busy(self) -> bool:
        """True while a create or delete is in progress."""
        return self._mutation_lock.locked()

    def get(self, note_id: str) -> Optional[Note]:
        """Find a note in the displayed sequence by id."""
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    # ── Internals ─────────────────────────────────────────────────────────

    async def _call(
        self,
        awaitable: Awaitable[T],
        error_cls: Type[NoteSyncError],
        operation: str,
    ) -> T:
        """
        Await a remote call under the configured timeout.

        Our own exceptions pass through unchanged; timeouts and unexpected
        exceptions are raised as `error_cls`.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except NoteSyncError:
            raise
        except asyncio.TimeoutError:
            logger.error("%s timed out after %ss", operation, self.call_timeout)
            raise error_cls(
                message="A backing service did not respond in time. Please try again.",
                context={"operation": operation, "timeout": self.call_timeout},
            )
        except Exception as e:
            logger.error("%s failed: %s", operation, str(e), exc_info=True)
            raise error_cls(context={"operation": operation, "error_type": type(e).__name__})

    def _path_for(self, note_id: str, file_name: str) -> str:
        return derive_path(self.identity, note_id, file_name, namespace=self.namespace)

    def _publish(self, token: int, notes: Sequence[Note]) -> bool:
        """Replace the displayed sequence unless a later refresh already did."""
        if token < self._published_token:
            logger.debug(
                "Discarding stale refresh result (token %d < %d)",
                token,
                self._published_token,
            )
            return False
        self._published_token = token
        self._notes = tuple(notes)
        return True

    async def _resolve_image(self, note: Note) -> Note:
        """Swap a stored image reference for a temporary URL, or drop it on failure."""
        if not isinstance(note.image, StoredImage):
            return note
        try:
            path = self._path_for(note.id, note.image.file_name)
            url = await self._call(
                self._storage.resolve_url(path),
                RemoteReadError,
                "storage.resolve_url",
            )
        except NoteSyncError as e:
            logger.warning(
                "Showing note %s without image: %s (%s)",
                note.id,
                e.message,
                e.context,
            )
            return note.model_copy(update={"image": None})
        return note.model_copy(update={"image": ResolvedImage(path=path, url=url)})

    # ── Operations ────────────────────────────────────────────────────────

    async def refresh(self) -> List[Note]:
        """
        Re-read the note sequence and resolve display URLs.

        Returns:
            The enriched notes in record service order.

        Raises:
            RemoteReadError: the record list could not be read; the previously
                             displayed sequence is left as it was.
        """
        token = next(self._tokens)
        listed = await self._call(
            self._records.list_notes(self.identity),
            RemoteReadError,
            "records.list_notes",
        )
        notes = list(await asyncio.gather(*(self._resolve_image(n) for n in listed)))
        self._publish(token, notes)
        logger.info("Refreshed %d notes for %s", len(notes), self.identity)
        return notes

    async def create(
        self,
        name: str,
        description: str,
        image: Optional[ImageUpload] = None,
    ) -> Note:
        """
        Create a note, upload its image if one was given, and refresh.

        Args:
            name: Note title (required, non-blank)
            description: Note body (required, non-blank)
            image: Image file from the form; an empty file name means no image

        Returns:
            The new note. With an image, this is the note as read back by the
            refresh (its image resolved to a URL, or None if resolution failed).

        Raises:
            ValidationError: blank name or description, or an unusable file
                             name; nothing was written
            RemoteWriteError: the record could not be created
            UploadError: the record was created but the upload failed
        """
        if not name or not name.strip():
            raise ValidationError(message="Note name is required", field="name")
        if not description or not description.strip():
            raise ValidationError(message="Note description is required", field="description")
        if image is not None and not image.file_name:
            image = None
        if image is not None:
            # Reject unusable names before the record is written
            derive_path(self.identity, "pending", image.file_name, namespace=self.namespace)

        async with self._mutation_lock:
            created = await self._call(
                self._records.create(
                    self.identity,
                    name,
                    description,
                    image.file_name if image else None,
                ),
                RemoteWriteError,
                "records.create",
            )
            logger.info("Created note %s for %s", created.id, self.identity)

            if image is None:
                # A refresh that ran during records.create may already show it
                if self.get(created.id) is None:
                    token = next(self._tokens)
                    self._publish(token, self._notes + (created,))
                return created

            path = self._path_for(created.id, image.file_name)
            try:
                await self._call(
                    self._storage.upload(path, image.content),
                    RemoteWriteError,
                    "storage.upload",
                )
            except NoteSyncError as e:
                rolled_back = await self._discard_record(created.id)
                raise UploadError(
                    note_id=created.id,
                    path=path,
                    record_rolled_back=rolled_back,
                    context={"cause": e.message},
                ) from e

            notes = await self.refresh()

        for note in notes:
            if note.id == created.id:
                return note
        # Deleted by a concurrent session between upload and refresh
        return created.model_copy(update={"image": StoredImage(file_name=image.file_name)})

    async def _discard_record(self, note_id: str) -> bool:
        """Compensating delete after a failed upload. Returns True on success."""
        try:
            await self._call(
                self._records.delete(self.identity, note_id),
                RemoteWriteError,
                "records.delete",
            )
        except NoteSyncError as e:
            logger.error(
                "Note %s references an image that was never stored; rollback failed: %s",
                note_id,
                e.message,
            )
            return False
        logger.warning("Rolled back note %s after failed image upload", note_id)
        return True

    async def delete(self, note: Note) -> None:
        """
        Delete a saved note's record and refresh.

        The stored image object, if any, is left in place.

        Raises:
            PreconditionError: the note has no id (never saved); no remote call
            NotFoundError: the record service has no such note for this user
            RemoteWriteError: the delete failed
            RemoteReadError: the delete succeeded but the refresh failed
        """
        if note.id is None:
            raise PreconditionError(
                message="Only saved notes can be deleted",
                context={"name": note.name},
            )

        async with self._mutation_lock:
            await self._call(
                self._records.delete(self.identity, note.id),
                RemoteWriteError,
                "records.delete",
            )
            logger.info("Deleted note %s for %s", note.id, self.identity)
            await self.refresh()
