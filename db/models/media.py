"""
db/models/media.py

Media model: a job board or recruiting site that keywords and traffic
figures are attached to.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.media_keyword import MediaKeyword
    from db.models.traffic_data import TrafficData


class Media(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "media"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    domain: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Bare host without scheme or www., used to match traffic files",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    keyword_links: Mapped[list["MediaKeyword"]] = relationship(
        "MediaKeyword",
        back_populates="media",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    traffic: Mapped[list["TrafficData"]] = relationship(
        "TrafficData",
        back_populates="media",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("domain", name="uq_media_domain"),
        Index("ix_media_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Media id={self.id} name={self.name!r} domain={self.domain!r}>"
