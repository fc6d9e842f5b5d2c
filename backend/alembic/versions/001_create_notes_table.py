"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `notes` table of the record service.
How:   One row per note, scoped by owner identity. The image column holds the
       attached image's file name only; the storage path is derived from
       (owner, id, image) and never persisted.

Rollback: downgrade() drops the table (all note records are lost; stored
image objects are untouched).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        # Assigned by the application on insert
        sa.Column(
            "id",
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment="Note identifier, assigned on create",
        ),
        sa.Column(
            "owner",
            sa.String(255),
            nullable=False,
            comment="Identity of the user who owns the note",
        ),
        sa.Column(
            "name",
            sa.String(255),
            nullable=False,
            comment="Short note title",
        ),
        sa.Column(
            "description",
            sa.Text(),
            nullable=False,
            comment="Note body",
        ),
        sa.Column(
            "image",
            sa.String(255),
            nullable=True,
            comment="File name of the attached image; path is media/<owner>/<id>/<image>",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this note was created (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Every list query is "WHERE owner = ? ORDER BY created_at"
    op.create_index(
        "idx_notes_owner_created_at",
        "notes",
        ["owner", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_notes_owner_created_at", table_name="notes")
    op.drop_table("notes")
