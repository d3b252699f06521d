"""create media, keywords, media_keywords and traffic_data tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "media",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("domain", name="uq_media_domain"),
    )
    op.create_index("ix_media_is_active", "media", ["is_active"], unique=False)

    op.create_table(
        "keywords",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("keyword", sa.String(length=500), nullable=False),
        sa.Column("keyword_normalized", sa.String(length=500), nullable=False),
        sa.Column("intent", sa.String(length=32), nullable=False, server_default="unknown"),
        sa.Column("intent_confidence", sa.Float(), nullable=True),
        sa.Column("intent_reason", sa.Text(), nullable=True),
        sa.Column("intent_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("classification_source", sa.String(length=16), nullable=True),
        sa.Column("query_type", sa.String(length=8), nullable=True),
        sa.Column("max_monthly_search_volume", sa.Integer(), nullable=True),
        sa.Column("max_cpc", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("keyword_normalized", name="uq_keywords_keyword_normalized"),
    )
    op.create_index("ix_keywords_intent", "keywords", ["intent"], unique=False)

    op.create_table(
        "media_keywords",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("media_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("keyword_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("ranking_position", sa.Integer(), nullable=True),
        sa.Column("monthly_search_volume", sa.Integer(), nullable=True),
        sa.Column("estimated_traffic", sa.Integer(), nullable=True),
        sa.Column("cpc", sa.Float(), nullable=True),
        sa.Column("competition_level", sa.Integer(), nullable=True),
        sa.Column("seo_difficulty", sa.Integer(), nullable=True),
        sa.Column("landing_url", sa.Text(), nullable=True),
        sa.Column("source_file", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["media_id"], ["media.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["keyword_id"], ["keywords.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("media_id", "keyword_id", name="uq_media_keywords_media_keyword"),
    )
    op.create_index("ix_media_keywords_keyword_id", "media_keywords", ["keyword_id"], unique=False)

    op.create_table(
        "traffic_data",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("media_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("period", sa.String(length=32), nullable=False),
        sa.Column("monthly_visits", sa.BigInteger(), nullable=True),
        sa.Column("source_file", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["media_id"], ["media.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("media_id", "period", name="uq_traffic_data_media_period"),
    )


def downgrade() -> None:
    op.drop_table("traffic_data")
    op.drop_index("ix_media_keywords_keyword_id", table_name="media_keywords")
    op.drop_table("media_keywords")
    op.drop_index("ix_keywords_intent", table_name="keywords")
    op.drop_table("keywords")
    op.drop_index("ix_media_is_active", table_name="media")
    op.drop_table("media")
