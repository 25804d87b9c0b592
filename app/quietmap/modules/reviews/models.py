from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.quietmap.models import Base
from app.quietmap.utils import iso, utcnow


@dataclass(frozen=True)
class Visible:
    hidden = False


@dataclass(frozen=True)
class Hidden:
    at: datetime
    hidden = True


Visibility = Union[Visible, Hidden]

VISIBLE = Visible()


class ReportStatus(str, enum.Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("venue_id", "author_id", name="uq_reviews_venue_author"),
        Index("idx_reviews_venue_id", "venue_id"),
        Index("idx_reviews_hidden_at", "hidden_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id", ondelete="CASCADE"), nullable=False)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    author_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..5
    title: Mapped[str | None] = mapped_column(String(80), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    visit_time_hint: Mapped[str | None] = mapped_column(String(10), nullable=True)  # YYYY-MM-DD

    noise_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    lighting: Mapped[str | None] = mapped_column(String(16), nullable=True)
    crowding: Mapped[str | None] = mapped_column(String(16), nullable=True)
    quiet_space: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    sensory_hours: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # NULL = visible
    hidden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    # Deleting a review nulls review_id on its reports instead of removing them.
    reports: Mapped[list["ReviewReport"]] = relationship("ReviewReport", back_populates="review")

    @property
    def visibility(self) -> Visibility:
        return Hidden(self.hidden_at) if self.hidden_at is not None else VISIBLE

    @visibility.setter
    def visibility(self, value: Visibility) -> None:
        self.hidden_at = value.at if isinstance(value, Hidden) else None

    @property
    def is_hidden(self) -> bool:
        return isinstance(self.visibility, Hidden)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "venueId": self.venue_id,
            "authorName": self.author_name,
            "rating": self.rating,
            "title": self.title,
            "content": self.content,
            "visitTimeHint": self.visit_time_hint,
            "noiseLevel": self.noise_level,
            "lighting": self.lighting,
            "crowding": self.crowding,
            "quietSpace": self.quiet_space,
            "sensoryHours": self.sensory_hours,
            "hidden": self.is_hidden,
            "hiddenAt": iso(self.hidden_at),
            "createdAt": iso(self.created_at),
        }


class ReviewReport(Base):
    __tablename__ = "review_reports"
    __table_args__ = (
        Index("idx_review_reports_status", "status"),
        Index("idx_review_reports_review_id", "review_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    review_id: Mapped[int | None] = mapped_column(ForeignKey("reviews.id", ondelete="SET NULL"), nullable=True)
    venue_id: Mapped[int] = mapped_column(ForeignKey("venues.id", ondelete="CASCADE"), nullable=False)

    reporter_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reporter_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ReportStatus.OPEN.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    resolved_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    review: Mapped[Review | None] = relationship("Review", back_populates="reports")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "reviewId": self.review_id,
            "venueId": self.venue_id,
            "reason": self.reason,
            "message": self.message,
            "status": self.status,
            "createdAt": iso(self.created_at),
            "resolvedAt": iso(self.resolved_at),
            "resolutionNote": self.resolution_note,
        }
