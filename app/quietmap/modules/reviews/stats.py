"""
Denormalized review aggregates on Venue.

The counters are derived state: every write that changes a review's existence
or hidden_at calls `recompute_venue_review_stats` in the same transaction.
Nothing ever increments them in place.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Float, case, cast, func, select, type_coerce

from app.quietmap.errors import NotFoundError
from app.quietmap.modules.reviews.models import Review
from app.quietmap.modules.venues.models import Venue
from app.quietmap.utils import iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewStats:
    visible_count: int
    hidden_count: int
    avg_rating: float | None
    last_reviewed_at: datetime | None

    @property
    def total_count(self) -> int:
        return self.visible_count + self.hidden_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "visibleCount": self.visible_count,
            "hiddenCount": self.hidden_count,
            "avgRating": self.avg_rating,
            "lastReviewedAt": iso(self.last_reviewed_at),
        }


def compute_review_stats(s: "Session", venue_id: int) -> ReviewStats:
    """One aggregate SELECT over the venue's reviews, split by hidden_at."""
    is_visible = Review.hidden_at.is_(None)
    row = s.execute(
        select(
            func.count(case((is_visible, 1))),
            func.count(case((Review.hidden_at.is_not(None), 1))),
            func.avg(case((is_visible, cast(Review.rating, Float)))),
            type_coerce(func.max(case((is_visible, Review.created_at))), DateTime(timezone=False)),
        ).where(Review.venue_id == venue_id)
    ).one()
    visible, hidden, avg, last = row
    return ReviewStats(
        visible_count=int(visible or 0),
        hidden_count=int(hidden or 0),
        avg_rating=float(avg) if avg is not None else None,
        last_reviewed_at=last,
    )


def recompute_venue_review_stats(s: "Session", venue_id: int) -> ReviewStats:
    """
    Recompute and persist the venue's review aggregates. Idempotent.
    Pending ORM changes are flushed first so the aggregate sees them.
    """
    s.flush()
    venue = s.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.", context={"venueId": venue_id})

    stats = compute_review_stats(s, venue_id)
    venue.review_count = stats.total_count
    venue.visible_review_count = stats.visible_count
    venue.hidden_review_count = stats.hidden_count
    venue.avg_rating = stats.avg_rating
    venue.last_reviewed_at = stats.last_reviewed_at
    return stats


def recompute_all_venue_stats(s: "Session") -> int:
    """Maintenance sweep over every venue. Caller commits. Returns venues touched."""
    venue_ids = list(s.execute(select(Venue.id).order_by(Venue.id.asc())).scalars())
    for venue_id in venue_ids:
        recompute_venue_review_stats(s, venue_id)
    logger.info("Recomputed review stats for %s venue(s)", len(venue_ids))
    return len(venue_ids)
