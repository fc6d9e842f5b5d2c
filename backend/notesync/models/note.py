"""
NoteSync Backend — Note Record SQLAlchemy Model
=================================================

What:  ORM model representing the `notes` table of the record service.
Why:   Maps persisted note metadata to Python objects.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used only by SqlRecordGateway. Everything above the gateway works with
       the domain `Note` schema instead.

Table Design:
    - id: UUID generated client-side at insert, so the gateway can return it
      without a second round trip.
    - owner: identity string of the user the note belongs to. Every query is
      scoped by owner; that is what keeps users from seeing each other's notes.
    - image: the uploaded image's file name, or NULL when the note has none.
      The storage path is not stored; it is derived from (owner, id, image).
    - created_at: UTC timestamp; listing order is created_at ascending.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from notesync.database import Base


class NoteRecord(Base):
    """
    One persisted note.

    Lifecycle:
        1. Inserted by SqlRecordGateway.create (image = file name or NULL)
        2. Read back by every list_notes() call
        3. Deleted by SqlRecordGateway.delete; the image object it referenced
           is left in storage
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Note identifier, assigned on create",
    )

    owner: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Identity of the user who owns the note",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Short note title",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Note body",
    )

    # NULL means the note has no image
    image: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="File name of the attached image; path is media/<owner>/<id>/<image>",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this note was created (UTC)",
    )

    __table_args__ = (
        Index("idx_notes_owner_created_at", "owner", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<NoteRecord(id={self.id}, owner='{self.owner}', image={self.image!r})>"
