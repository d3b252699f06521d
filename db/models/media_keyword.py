"""
db/models/media_keyword.py

Association between a media site and a keyword it ranks for, with the
per-media search metrics from the imported file.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.keyword import Keyword
    from db.models.media import Media


class MediaKeyword(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "media_keywords"

    media_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("media.id", ondelete="CASCADE"),
        nullable=False,
    )

    keyword_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("keywords.id", ondelete="CASCADE"),
        nullable=False,
    )

    ranking_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    monthly_search_volume: Mapped[int | None] = mapped_column(Integer, nullable=True)
    estimated_traffic: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cpc: Mapped[float | None] = mapped_column(Float, nullable=True)
    competition_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    seo_difficulty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    landing_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    source_file: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Original upload file name",
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    media: Mapped["Media"] = relationship("Media", back_populates="keyword_links")
    keyword: Mapped["Keyword"] = relationship("Keyword", back_populates="media_links")

    __table_args__ = (
        UniqueConstraint("media_id", "keyword_id", name="uq_media_keywords_media_keyword"),
        Index("ix_media_keywords_keyword_id", "keyword_id"),
    )
