"""
Operator actions on reviews and review reports.

Each action runs inside the caller's unit of work and recomputes the owning
venue's aggregates before returning, except `delete_review_and_resolve_report`,
which commits the deletion before touching the report.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from app.quietmap.audit import record_event
from app.quietmap.errors import ConflictError, NotFoundError, PartialFailureError, ReportedReviewMissingError
from app.quietmap.modules.reviews.models import VISIBLE, Hidden, ReportStatus, Review, ReviewReport
from app.quietmap.modules.reviews.stats import ReviewStats, recompute_venue_review_stats
from app.quietmap.utils import clean_str, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.quietmap.models import User


logger = logging.getLogger(__name__)


def get_review(s: "Session", review_id: int) -> Review:
    review = s.get(Review, review_id)
    if review is None:
        raise NotFoundError("Review not found.", context={"reviewId": review_id})
    return review


def get_report(s: "Session", report_id: int) -> ReviewReport:
    report = s.get(ReviewReport, report_id)
    if report is None:
        raise NotFoundError("Report not found.", context={"reportId": report_id})
    return report


def _reported_review(report: ReviewReport) -> Review:
    review = report.review
    if review is None:
        raise ReportedReviewMissingError(
            "The reported review no longer exists.",
            context={"reportId": report.id},
        )
    return review


def _mark_report(report: ReviewReport, status: ReportStatus, *, user: "User | None", note: str | None) -> None:
    report.status = status.value
    report.resolved_at = utcnow()
    report.resolved_by_user_id = user.id if user else None
    report.resolution_note = clean_str(note)


def set_review_visibility(
    s: "Session",
    review_id: int,
    *,
    user: "User | None",
    hidden: bool | None = None,
) -> tuple[Review, ReviewStats]:
    """Set hidden/visible explicitly, or flip the current state when `hidden` is None."""
    review = get_review(s, review_id)
    make_hidden = (not review.is_hidden) if hidden is None else hidden

    if make_hidden and not review.is_hidden:
        review.visibility = Hidden(utcnow())
    elif not make_hidden and review.is_hidden:
        review.visibility = VISIBLE

    stats = recompute_venue_review_stats(s, review.venue_id)
    record_event(
        s,
        actor=user,
        action="review.hide" if review.is_hidden else "review.unhide",
        entity_type="Review",
        entity_id=str(review.id),
        metadata={"venue_id": review.venue_id},
    )
    return review, stats


def _delete_review(s: "Session", review: Review, *, user: "User | None", report_id: int | None = None) -> ReviewStats:
    venue_id = review.venue_id
    review_id = review.id
    rating = review.rating
    s.delete(review)
    s.flush()
    stats = recompute_venue_review_stats(s, venue_id)
    metadata: dict[str, Any] = {"venue_id": venue_id, "rating": rating}
    if report_id is not None:
        metadata["report_id"] = report_id
    record_event(
        s,
        actor=user,
        action="review.delete",
        entity_type="Review",
        entity_id=str(review_id),
        metadata=metadata,
    )
    return stats


def delete_review(s: "Session", review_id: int, *, user: "User | None") -> ReviewStats:
    """Remove the row. Its reports stay, with review_id cleared."""
    return _delete_review(s, get_review(s, review_id), user=user)


def resolve_report(
    s: "Session",
    report_id: int,
    *,
    user: "User | None",
    note: str | None = None,
) -> tuple[ReviewReport, ReviewStats | None]:
    """
    Hide the reported review (never un-hide it) and mark the report RESOLVED.

    Resolving a RESOLVED report is a no-op. A DISMISSED report cannot be
    resolved. If the review is gone, ReportedReviewMissingError is raised and
    nothing changes.
    """
    report = get_report(s, report_id)
    if report.status == ReportStatus.RESOLVED.value:
        return report, None
    if report.status == ReportStatus.DISMISSED.value:
        raise ConflictError(f"Cannot resolve report in status {report.status}", context={"status": report.status})

    review = _reported_review(report)
    if not review.is_hidden:
        review.visibility = Hidden(utcnow())
    stats = recompute_venue_review_stats(s, review.venue_id)

    _mark_report(report, ReportStatus.RESOLVED, user=user, note=note)
    record_event(
        s,
        actor=user,
        action="review_report.resolve",
        entity_type="ReviewReport",
        entity_id=str(report.id),
        reason=report.resolution_note,
        metadata={"review_id": review.id, "venue_id": review.venue_id},
    )
    return report, stats


def dismiss_report(s: "Session", report_id: int, *, user: "User | None", note: str | None = None) -> ReviewReport:
    report = get_report(s, report_id)
    if report.status == ReportStatus.DISMISSED.value:
        return report
    if report.status == ReportStatus.RESOLVED.value:
        raise ConflictError(f"Cannot dismiss report in status {report.status}", context={"status": report.status})

    _mark_report(report, ReportStatus.DISMISSED, user=user, note=note)
    record_event(
        s,
        actor=user,
        action="review_report.dismiss",
        entity_type="ReviewReport",
        entity_id=str(report.id),
        reason=report.resolution_note,
        metadata={"review_id": report.review_id, "venue_id": report.venue_id},
    )
    return report


def delete_review_and_resolve_report(
    s: "Session",
    report_id: int,
    *,
    user: "User | None",
    note: str | None = None,
) -> tuple[ReviewReport, ReviewStats]:
    """
    Delete the reported review, commit, then resolve the report and commit.

    The deletion is not rolled back if the second step fails; the caller gets a
    PartialFailureError naming what completed instead.
    """
    report = get_report(s, report_id)
    if report.status == ReportStatus.DISMISSED.value:
        raise ConflictError(f"Cannot resolve report in status {report.status}", context={"status": report.status})
    review = _reported_review(report)
    review_id = review.id

    try:
        stats = _delete_review(s, review, user=user, report_id=report.id)
        s.commit()
    except Exception:
        s.rollback()
        raise

    try:
        if report.status != ReportStatus.RESOLVED.value:
            _mark_report(report, ReportStatus.RESOLVED, user=user, note=note)
            record_event(
                s,
                actor=user,
                action="review_report.resolve",
                entity_type="ReviewReport",
                entity_id=str(report.id),
                reason=report.resolution_note,
                metadata={"review_id": review_id, "venue_id": report.venue_id, "review_deleted": True},
            )
        s.commit()
    except SQLAlchemyError as e:
        s.rollback()
        logger.exception("Review id=%s deleted but report id=%s could not be resolved", review_id, report_id)
        raise PartialFailureError(
            "Review deleted, but the report could not be marked resolved.",
            completed=["review.delete"],
            failed="review_report.resolve",
            context={"reviewId": review_id, "reportId": report_id},
        ) from e

    return report, stats
