"""
db/models/traffic_data.py

Monthly visit figures per media site and period.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.media import Media


class TrafficData(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "traffic_data"

    media_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("media.id", ondelete="CASCADE"),
        nullable=False,
    )

    period: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Reporting period label, e.g. 2026-05 or monthly",
    )

    monthly_visits: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    source_file: Mapped[str | None] = mapped_column(String(255), nullable=True)

    media: Mapped["Media"] = relationship("Media", back_populates="traffic")

    __table_args__ = (UniqueConstraint("media_id", "period", name="uq_traffic_data_media_period"),)
