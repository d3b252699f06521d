"""add is_verified flag to keywords

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "keywords",
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index(
        "ix_keywords_is_verified",
        "keywords",
        ["is_verified"],
        unique=False,
        postgresql_where=sa.text("is_verified"),
    )


def downgrade() -> None:
    op.drop_index("ix_keywords_is_verified", table_name="keywords")
    op.drop_column("keywords", "is_verified")
