"""
db/models/keyword.py

Keyword model: one row per normalized search keyword with its latest
intent classification and the highest observed search metrics.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text, UniqueConstraint, false, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.media_keyword import MediaKeyword


class Keyword(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """
    A search keyword, unique by its normalized form.

    Re-importing a keyword updates its classification in place unless the
    row is verified; the ``keyword_normalized`` column is the upsert
    conflict key.
    """

    __tablename__ = "keywords"

    keyword: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    keyword_normalized: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Lower-cased, whitespace-collapsed keyword",
    )

    intent: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="unknown",
    )

    intent_confidence: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )

    intent_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    intent_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    classification_source: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        comment="rule, ai or manual",
    )

    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="Operator-confirmed intent; imports never overwrite it",
    )

    query_type: Mapped[str | None] = mapped_column(
        String(8),
        nullable=True,
        comment="Do, Know, Go or Buy",
    )

    max_monthly_search_volume: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    max_cpc: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    media_links: Mapped[list["MediaKeyword"]] = relationship(
        "MediaKeyword",
        back_populates="keyword",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        UniqueConstraint("keyword_normalized", name="uq_keywords_keyword_normalized"),
        Index("ix_keywords_intent", "intent"),
        Index("ix_keywords_is_verified", "is_verified", postgresql_where=text("is_verified")),
    )

    def __repr__(self) -> str:
        return f"<Keyword id={self.id} keyword={self.keyword!r} intent={self.intent!r}>"
