from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.quietmap.audit import record_event
from app.quietmap.errors import ConflictError, NotFoundError
from app.quietmap.modules.reviews.models import ReportStatus, Review, ReviewReport
from app.quietmap.modules.reviews.stats import ReviewStats, recompute_venue_review_stats
from app.quietmap.modules.reviews.validation import clean_report, clean_review
from app.quietmap.modules.venues.models import Venue
from app.quietmap.utils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.quietmap.models import User


logger = logging.getLogger(__name__)


def _public_venue(s: "Session", venue_id: int) -> Venue:
    venue = s.get(Venue, venue_id)
    if venue is None or venue.is_archived:
        raise NotFoundError("Venue not found.", context={"venueId": venue_id})
    return venue


def _apply_review_fields(review: Review, data: dict[str, Any]) -> None:
    review.rating = data["rating"]
    review.title = data["title"]
    review.content = data["content"]
    review.visit_time_hint = data["visitTimeHint"]
    review.noise_level = data["noiseLevel"]
    review.lighting = data["lighting"]
    review.crowding = data["crowding"]
    review.quiet_space = data["quietSpace"]
    review.sensory_hours = data["sensoryHours"]


def get_own_review(s: "Session", venue_id: int, user: "User") -> Review | None:
    return s.execute(
        select(Review).where(Review.venue_id == venue_id, Review.author_id == user.id)
    ).scalar_one_or_none()


def create_review(s: "Session", venue_id: int, data: Any, *, user: "User") -> tuple[Review, ReviewStats]:
    """One review per (venue, author); new reviews start visible."""
    cleaned = clean_review(data)
    venue = _public_venue(s, venue_id)

    if get_own_review(s, venue.id, user) is not None:
        raise ConflictError("You've already reviewed this venue.")

    now = utcnow()
    review = Review(
        venue_id=venue.id,
        author_id=user.id,
        author_name=user.public_name,
        hidden_at=None,
        created_at=now,
        updated_at=now,
    )
    _apply_review_fields(review, cleaned)
    s.add(review)
    try:
        s.flush()
    except IntegrityError as e:
        # Lost a race with the same author's concurrent submit.
        raise ConflictError("You've already reviewed this venue.") from e

    stats = recompute_venue_review_stats(s, venue.id)
    record_event(
        s,
        actor=user,
        action="review.create",
        entity_type="Review",
        entity_id=str(review.id),
        metadata={"venue_id": venue.id, "rating": review.rating},
    )
    return review, stats


def update_own_review(s: "Session", venue_id: int, data: Any, *, user: "User") -> tuple[Review, ReviewStats]:
    cleaned = clean_review(data)
    venue = _public_venue(s, venue_id)

    review = get_own_review(s, venue.id, user)
    if review is None:
        raise NotFoundError("No existing review to edit yet.")

    old_rating = review.rating
    _apply_review_fields(review, cleaned)
    review.author_name = user.public_name
    review.updated_at = utcnow()

    stats = recompute_venue_review_stats(s, venue.id)
    record_event(
        s,
        actor=user,
        action="review.edit",
        entity_type="Review",
        entity_id=str(review.id),
        metadata={"venue_id": venue.id, "rating": {"old": old_rating, "new": review.rating}},
    )
    return review, stats


def report_review(
    s: "Session",
    venue_id: int,
    review_id: int,
    data: Any,
    *,
    user: "User | None" = None,
    reporter_ip: str | None = None,
) -> ReviewReport:
    """Anyone can flag a review; anonymous reporters are identified by IP only."""
    cleaned = clean_report(data)

    review = s.get(Review, review_id)
    if review is None or review.venue_id != venue_id:
        raise NotFoundError("Review not found.", context={"reviewId": review_id})

    report = ReviewReport(
        review_id=review.id,
        venue_id=review.venue_id,
        reporter_id=user.id if user else None,
        reporter_ip=reporter_ip,
        reason=cleaned["reason"],
        message=cleaned["message"],
        status=ReportStatus.OPEN.value,
        created_at=utcnow(),
    )
    s.add(report)
    s.flush()

    record_event(
        s,
        actor=user,
        action="review.report",
        entity_type="ReviewReport",
        entity_id=str(report.id),
        metadata={"review_id": review.id, "venue_id": review.venue_id, "reason": report.reason},
    )
    logger.info("Review id=%s reported (%s)", review.id, report.reason)
    return report
