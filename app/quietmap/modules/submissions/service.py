"""
Venue submission lifecycle.

PENDING -> APPROVED | REJECTED, exactly once. Every transition out of PENDING
goes through `_claim`, a conditional UPDATE keyed on the current status, so two
moderators racing on the same submission cannot both succeed. All checks that
can fail (validation, duplicates) run before the claim; the venue write and the
status write then share the caller's transaction.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from app.quietmap.audit import record_event
from app.quietmap.errors import ConflictError, NotFoundError, ValidationError
from app.quietmap.modules.geo.postcodes import format_postcode
from app.quietmap.modules.submissions.models import SubmissionStatus, SubmissionType, VenueSubmission
from app.quietmap.modules.submissions.validation import clean_venue_submission, merge_submission_input
from app.quietmap.modules.venues.models import Venue
from app.quietmap.modules.venues.service import (
    apply_venue_fields,
    find_duplicates,
    get_venue,
    normalize_images,
    normalize_tags,
)
from app.quietmap.utils import clean_str, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.quietmap.models import User
    from app.quietmap.modules.geo.geocoder import CachingGeocoder


logger = logging.getLogger(__name__)


def get_submission(s: "Session", submission_id: int) -> VenueSubmission:
    sub = s.get(VenueSubmission, submission_id)
    if sub is None:
        raise NotFoundError("Submission not found.", context={"submissionId": submission_id})
    return sub


def _require_pending(sub: VenueSubmission, verb: str) -> None:
    if not sub.is_pending:
        raise ConflictError(
            f"Cannot {verb} submission in status {sub.status}",
            context={"status": sub.status},
        )


def _claim(s: "Session", sub: VenueSubmission, verb: str, **values: Any) -> None:
    """Apply `values` only if the row is still PENDING; otherwise ConflictError."""
    res = s.execute(
        update(VenueSubmission)
        .where(VenueSubmission.id == sub.id, VenueSubmission.status == SubmissionStatus.PENDING.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        current = s.execute(select(VenueSubmission.status).where(VenueSubmission.id == sub.id)).scalar_one_or_none()
        logger.info("Lost race to %s submission id=%s (status now %s)", verb, sub.id, current)
        raise ConflictError(
            f"Cannot {verb} submission in status {current}",
            context={"status": current},
        )
    s.refresh(sub)


def create_submission(
    s: "Session",
    *,
    payload: Any,
    proposed_name: str | None = None,
    submission_type: str | None = None,
    venue_id: int | None = None,
    submitted_by: str | None = None,
    user: "User | None" = None,
) -> VenueSubmission:
    stype = submission_type or SubmissionType.NEW_VENUE.value
    if stype not in (t.value for t in SubmissionType):
        raise ValidationError({"type": ["Must be NEW_VENUE or EDIT_VENUE."]}, message="Invalid request")

    merged = merge_submission_input(payload, proposed_name)
    if stype == SubmissionType.NEW_VENUE.value:
        if venue_id is not None:
            raise ValidationError({"venueId": ["venueId is only allowed for EDIT_VENUE."]}, message="Invalid request")
        if not clean_str(merged.get("proposedName")):
            raise ValidationError({"proposedName": ["Venue name is required."]}, message="Please enter a venue name.")
    else:
        if venue_id is None:
            raise ValidationError(
                {"venueId": ["venueId is required for EDIT_VENUE."]},
                message="Missing venueId for edit.",
            )
        venue = get_venue(s, venue_id)
        if venue.is_archived:
            raise ConflictError("Archived venues cannot be edited.", context={"venueId": venue.id})

    data = clean_venue_submission(merged)

    now = utcnow()
    sub = VenueSubmission(
        type=stype,
        status=SubmissionStatus.PENDING.value,
        proposed_name=data["proposedName"],
        payload=data,
        venue_id=venue_id,
        submitted_by=clean_str(submitted_by) or (user.public_name if user else None),
        submitted_by_user_id=user.id if user else None,
        created_at=now,
        updated_at=now,
    )
    s.add(sub)
    s.flush()

    record_event(
        s,
        actor=user,
        action="submission.create",
        entity_type="VenueSubmission",
        entity_id=str(sub.id),
        metadata={"type": stype, "venue_id": venue_id, "proposed_name": sub.proposed_name},
    )
    return sub


def approve_submission(
    s: "Session",
    submission_id: int,
    *,
    user: "User | None",
    force: bool = False,
    verify: bool = False,
    geocoder: "CachingGeocoder | None" = None,
) -> int:
    """
    Materialize a PENDING submission into a venue. Returns the venue id.

    Raises ConflictError with `duplicates` when other live venues share the
    postcode, unless `force` is set. Geocoding is best-effort: a failed lookup
    leaves lat/lng/geohash NULL and approval still succeeds.
    """
    sub = get_submission(s, submission_id)
    _require_pending(sub, "approve")

    try:
        data = clean_venue_submission(merge_submission_input(sub.payload, sub.proposed_name))
    except ValidationError as e:
        raise ValidationError(e.field_errors, message="Submission payload invalid") from e

    data["postcode"] = format_postcode(data["postcode"])
    data["tags"] = normalize_tags(data["tags"])
    data["coverImageUrl"], data["imageUrls"] = normalize_images(data.get("coverImageUrl"), data.get("imageUrls"))

    target: Venue | None = None
    if sub.type == SubmissionType.EDIT_VENUE.value:
        if sub.venue_id is None:
            raise ConflictError("Edit submission has no target venue.", context={"status": sub.status})
        target = get_venue(s, sub.venue_id)

    if force:
        # Explicit operator override: duplicates are not consulted at all.
        logger.warning(
            "Submission id=%s approved with force=1; duplicate check skipped (postcode=%s)",
            sub.id,
            data["postcode"],
        )
    else:
        dups = find_duplicates(s, data["postcode"], exclude_venue_id=target.id if target else None)
        if dups:
            raise ConflictError(
                "Possible duplicate venue(s) at this postcode. Re-approve with force to proceed.",
                context={"duplicates": [v.summary() for v in dups]},
            )

    if geocoder is None:
        from app.quietmap.modules.geo.geocoder import get_geocoder

        geocoder = get_geocoder()
    coords = geocoder.resolve(data["postcode"])
    if coords is None:
        logger.info("No coordinates for submission id=%s postcode=%s", sub.id, data["postcode"])

    now = utcnow()
    _claim(
        s,
        sub,
        "approve",
        status=SubmissionStatus.APPROVED.value,
        reviewed_at=now,
        reviewed_by_user_id=user.id if user else None,
        updated_at=now,
    )

    if target is None:
        venue = Venue(created_at=now)
        apply_venue_fields(venue, data)
        s.add(venue)
    else:
        venue = target
        apply_venue_fields(venue, data)
    venue.set_geo(coords)
    if verify:
        venue.verified_at = now
    s.flush()

    sub.venue_id = venue.id

    record_event(
        s,
        actor=user,
        action="submission.approve",
        entity_type="VenueSubmission",
        entity_id=str(sub.id),
        metadata={
            "type": sub.type,
            "venue_id": venue.id,
            "force": bool(force),
            "verify": bool(verify),
            "geocoded": coords is not None,
        },
    )
    logger.info("Submission id=%s approved -> venue id=%s (%s)", sub.id, venue.id, sub.type)
    return venue.id


def reject_submission(
    s: "Session",
    submission_id: int,
    *,
    user: "User | None",
    reason: str | None = None,
) -> VenueSubmission:
    sub = get_submission(s, submission_id)
    _require_pending(sub, "reject")

    reason = clean_str(reason)
    now = utcnow()
    _claim(
        s,
        sub,
        "reject",
        status=SubmissionStatus.REJECTED.value,
        reviewed_at=now,
        reviewed_by_user_id=user.id if user else None,
        rejection_reason=reason,
        updated_at=now,
    )

    record_event(
        s,
        actor=user,
        action="submission.reject",
        entity_type="VenueSubmission",
        entity_id=str(sub.id),
        reason=reason,
        metadata={"type": sub.type, "venue_id": sub.venue_id},
    )
    logger.info("Submission id=%s rejected", sub.id)
    return sub


def edit_submission(
    s: "Session",
    submission_id: int,
    *,
    user: "User | None",
    payload: Any,
    proposed_name: str | None = None,
) -> VenueSubmission:
    """Replace payload and name of a PENDING submission after full re-validation."""
    sub = get_submission(s, submission_id)
    _require_pending(sub, "edit")

    data = clean_venue_submission(merge_submission_input(payload, proposed_name))

    _claim(
        s,
        sub,
        "edit",
        proposed_name=data["proposedName"],
        payload=data,
        updated_at=utcnow(),
    )

    record_event(
        s,
        actor=user,
        action="submission.edit",
        entity_type="VenueSubmission",
        entity_id=str(sub.id),
        metadata={"proposed_name": sub.proposed_name},
    )
    return sub
