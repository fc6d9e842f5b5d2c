"""
NoteSync Backend — Note Record Gateway
========================================

What:  Contract for the structured-record service holding note metadata, plus
       the SQLAlchemy implementation backed by the `notes` table.
Why:   The synchronizer depends on three operations only (create, list,
       delete). Tests drive it with an in-memory fake of this contract.
How:   SqlRecordGateway opens one AsyncSession per call from an injected
       session factory. Each call commits on success and rolls back on error,
       so a note is visible to the next list_notes() as soon as create()
       returns and gone as soon as delete() returns.

Error Handling Strategy:
    SQLAlchemy errors are wrapped: list failures → RemoteReadError,
    create/delete failures → RemoteWriteError. Deleting an id that does not
    exist for this owner raises NotFoundError.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.exceptions import NotFoundError, RemoteReadError, RemoteWriteError
from notesync.models.note import NoteRecord
from notesync.schemas.note import Note, PendingUpload, StoredImage

logger = logging.getLogger(__name__)


class RecordGateway(ABC):
    """
    Abstract interface to the note record service.

    Contract:
        - create() assigns the note id atomically and returns the new note
        - list_notes() reflects every completed create/delete immediately
        - records are scoped to an owner identity; one owner never sees
          or deletes another owner's notes
    """

    @abstractmethod
    async def create(
        self,
        owner: str,
        name: str,
        description: str,
        image: Optional[str] = None,
    ) -> Note:
        """
        Insert a note record.

        Args:
            image: File name of the image that is about to be uploaded, if any.

        Returns:
            The created note with its id; its image is PendingUpload(image)
            when a file name was given.
        """
        ...

    @abstractmethod
    async def list_notes(self, owner: str) -> List[Note]:
        """All notes of `owner` in the service's natural order (StoredImage refs)."""
        ...

    @abstractmethod
    async def delete(self, owner: str, note_id: str) -> Note:
        """Delete one note and return it. Raises NotFoundError for unknown ids."""
        ...


def _to_note(record: NoteRecord) -> Note:
    return Note(
        id=str(record.id),
        name=record.name,
        description=record.description,
        image=StoredImage(file_name=record.image) if record.image else None,
    )


class SqlRecordGateway(RecordGateway):
    """Record gateway backed by the `notes` table through async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """One session per call: commit on success, roll back on any error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create(
        self,
        owner: str,
        name: str,
        description: str,
        image: Optional[str] = None,
    ) -> Note:
        record = NoteRecord(
            id=uuid.uuid4(),
            owner=owner,
            name=name,
            description=description,
            image=image or None,
        )
        try:
            async with self._transaction() as session:
                session.add(record)
        except SQLAlchemyError as e:
            logger.error("Database error creating note for %s: %s", owner, str(e))
            raise RemoteWriteError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Note record created: %s (image=%s)", record.id, record.image)
        return Note(
            id=str(record.id),
            name=record.name,
            description=record.description,
            image=PendingUpload(file_name=record.image) if record.image else None,
        )

    async def list_notes(self, owner: str) -> List[Note]:
        query = (
            select(NoteRecord)
            .where(NoteRecord.owner == owner)
            .order_by(NoteRecord.created_at.asc(), NoteRecord.id.asc())
        )
        try:
            async with self._transaction() as session:
                result = await session.execute(query)
                records = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes for %s: %s", owner, str(e), exc_info=True)
            raise RemoteReadError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )
        return [_to_note(record) for record in records]

    async def delete(self, owner: str, note_id: str) -> Note:
        try:
            key = uuid.UUID(note_id)
        except ValueError:
            raise NotFoundError(resource="note", resource_id=note_id)

        try:
            async with self._transaction() as session:
                result = await session.execute(
                    select(NoteRecord).where(
                        NoteRecord.id == key,
                        NoteRecord.owner == owner,
                    )
                )
                record = result.scalar_one_or_none()
                if record is None:
                    raise NotFoundError(resource="note", resource_id=note_id)
                await session.delete(record)
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, str(e))
            raise RemoteWriteError(
                message="Could not delete the note. Please try again.",
                context={"note_id": note_id, "error_type": type(e).__name__},
            )

        logger.info("Note record deleted: %s", note_id)
        return _to_note(record)
