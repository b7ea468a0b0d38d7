"""add emotional and theme analysis cache tables

Revision ID: 0002_add_analysis_cache
Revises: 0001_create_journal_entries
Create Date: 2025-09-12 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002_add_analysis_cache"
down_revision = "0001_create_journal_entries"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "emotional_analysis_cache",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("emotional_score", sa.Integer(), nullable=False),
        sa.Column("dominant_emotions", postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("entry_count", sa.Integer(), nullable=False),
        sa.Column("last_entry_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invalidated_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "entry_date", name="emotional_analysis_cache_user_date_key"),
        sa.CheckConstraint(
            "emotional_score BETWEEN 1 AND 10", name="emotional_analysis_cache_score_range"
        ),
    )

    op.create_table(
        "theme_analysis_cache",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("themes", postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("entry_count", sa.Integer(), nullable=False),
        sa.Column("last_entry_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invalidated_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "year", "month", name="theme_analysis_cache_user_month_key"),
    )


def downgrade() -> None:
    op.drop_table("theme_analysis_cache")
    op.drop_table("emotional_analysis_cache")
