from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.quietmap.models import Base
from app.quietmap.utils import iso, utcnow


class SubmissionType(str, enum.Enum):
    NEW_VENUE = "NEW_VENUE"
    EDIT_VENUE = "EDIT_VENUE"


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VenueSubmission(Base):
    __tablename__ = "venue_submissions"
    __table_args__ = (
        Index("idx_venue_submissions_status", "status"),
        Index("idx_venue_submissions_venue_id", "venue_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    type: Mapped[str] = mapped_column(String(16), nullable=False, default=SubmissionType.NEW_VENUE.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SubmissionStatus.PENDING.value)

    proposed_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Required for EDIT_VENUE; set on NEW_VENUE only at approval.
    venue_id: Mapped[int | None] = mapped_column(ForeignKey("venues.id", ondelete="SET NULL"), nullable=True)

    submitted_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    submitted_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reviewed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    venue = relationship("Venue", foreign_keys=[venue_id], lazy="selectin")

    @property
    def is_pending(self) -> bool:
        return self.status == SubmissionStatus.PENDING.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "proposedName": self.proposed_name,
            "payload": dict(self.payload or {}),
            "venueId": self.venue_id,
            "submittedBy": self.submitted_by,
            "createdAt": iso(self.created_at),
            "reviewedAt": iso(self.reviewed_at),
            "rejectionReason": self.rejection_reason,
        }
