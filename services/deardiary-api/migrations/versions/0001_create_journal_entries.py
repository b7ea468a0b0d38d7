"""create journal entries table

Revision ID: 0001_create_journal_entries
Revises: 
Create Date: 2025-09-08 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_create_journal_entries"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "journal_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index(
        "journal_entries_user_created_idx",
        "journal_entries",
        ["user_id", sa.text("created_at DESC")],
    )
    op.alter_column("journal_entries", "title", server_default=None)
    op.alter_column("journal_entries", "is_favorite", server_default=None)


def downgrade() -> None:
    op.drop_index("journal_entries_user_created_idx", table_name="journal_entries")
    op.drop_table("journal_entries")
