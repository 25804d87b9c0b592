from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.quietmap.audit import record_event
from app.quietmap.constants import BACKFILL_DEFAULT_LIMIT, BACKFILL_MAX_LIMIT, DUPLICATE_LIMIT, MAX_GALLERY_IMAGES
from app.quietmap.errors import NotFoundError, ValidationError
from app.quietmap.modules.geo.postcodes import format_postcode, postcode_variants
from app.quietmap.modules.venues.models import Venue, VenueFacilities, VenueSensory
from app.quietmap.utils import utcnow
from app.quietmap.validation import (
    FieldErrors,
    clean_facilities,
    clean_sensory,
    clean_tags,
    text_field,
    url_field,
    url_list_field,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.quietmap.models import User
    from app.quietmap.modules.geo.geocoder import CachingGeocoder


logger = logging.getLogger(__name__)

IMAGE_MODES = ("REPLACE", "APPEND")


def get_venue(s: "Session", venue_id: int) -> Venue:
    venue = s.get(Venue, venue_id)
    if venue is None:
        raise NotFoundError("Venue not found.", context={"venueId": venue_id})
    return venue


def find_duplicates(
    s: "Session",
    postcode: str | None,
    *,
    exclude_venue_id: int | None = None,
    limit: int = DUPLICATE_LIMIT,
) -> list[Venue]:
    """
    Non-archived venues sharing `postcode`.

    Older rows may hold the compact form ("LS12AB"), so both the canonical and
    compact spellings are matched.
    """
    variants = postcode_variants(postcode)
    if not variants:
        return []
    stmt = select(Venue).where(Venue.postcode.in_(variants), Venue.archived_at.is_(None))
    if exclude_venue_id is not None:
        stmt = stmt.where(Venue.id != exclude_venue_id)
    stmt = stmt.order_by(Venue.created_at.asc(), Venue.id.asc()).limit(limit)
    return list(s.execute(stmt).scalars())


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    out: list[str] = []
    for t in tags or []:
        t = (t or "").strip().lower()
        if t and t not in out:
            out.append(t)
    return out


def normalize_images(cover: str | None, gallery: Iterable[str] | None) -> tuple[str | None, list[str]]:
    """Trim URLs, drop empties, cap the gallery; a blank cover becomes None."""
    cover = (cover or "").strip() or None
    urls = [u.strip() for u in (gallery or []) if isinstance(u, str) and u.strip()]
    return cover, urls[:MAX_GALLERY_IMAGES]


def merge_gallery(existing: Iterable[str] | None, incoming: Iterable[str] | None, mode: str) -> list[str]:
    base = [] if mode == "REPLACE" else list(existing or [])
    out: list[str] = []
    for u in [*base, *(incoming or [])]:
        if u and u not in out:
            out.append(u)
    return out[:MAX_GALLERY_IMAGES]


def _apply_sensory(venue: Venue, data: Mapping[str, Any]) -> None:
    row = venue.sensory or VenueSensory()
    row.noise_level = data.get("noiseLevel")
    row.lighting = data.get("lighting")
    row.crowding = data.get("crowding")
    row.quiet_space = data.get("quietSpace")
    row.sensory_hours = data.get("sensoryHours")
    row.notes = data.get("notes")
    venue.sensory = row


def _apply_facilities(venue: Venue, data: Mapping[str, Any]) -> None:
    row = venue.facilities or VenueFacilities()
    row.parking = data.get("parking")
    row.accessible_toilet = data.get("accessibleToilet")
    row.baby_change = data.get("babyChange")
    row.wheelchair_access = data.get("wheelchairAccess")
    row.staff_trained = data.get("staffTrained")
    row.notes = data.get("notes")
    venue.facilities = row


def apply_venue_fields(venue: Venue, data: Mapping[str, Any], *, name_key: str = "proposedName") -> None:
    """
    Overwrite the venue's mutable fields from a cleaned payload.

    Sensory and facilities rows are upserted only when the payload carries them.
    Images are expected to be normalized already.
    """
    venue.name = data[name_key]
    venue.description = data.get("description")
    venue.website = data.get("website")
    venue.phone = data.get("phone")
    venue.address1 = data.get("address1")
    venue.address2 = data.get("address2")
    venue.city = data.get("city")
    venue.postcode = format_postcode(data.get("postcode")) or None
    venue.county = data.get("county")
    venue.tags = normalize_tags(data.get("tags"))
    venue.cover_image_url = data.get("coverImageUrl")
    venue.image_urls = list(data.get("imageUrls") or [])
    if data.get("sensory") is not None:
        _apply_sensory(venue, data["sensory"])
    if data.get("facilities") is not None:
        _apply_facilities(venue, data["facilities"])
    venue.updated_at = utcnow()


def archive_venue(s: "Session", venue_id: int, *, user: "User", reason: str | None = None) -> Venue:
    venue = get_venue(s, venue_id)
    if venue.archived_at is None:
        venue.archived_at = utcnow()
        venue.updated_at = venue.archived_at
        record_event(
            s,
            actor=user,
            action="venue.archive",
            entity_type="Venue",
            entity_id=str(venue.id),
            reason=reason,
            metadata=venue.summary(),
        )
    return venue


def unarchive_venue(s: "Session", venue_id: int, *, user: "User") -> Venue:
    venue = get_venue(s, venue_id)
    if venue.archived_at is not None:
        venue.archived_at = None
        venue.updated_at = utcnow()
        record_event(
            s,
            actor=user,
            action="venue.unarchive",
            entity_type="Venue",
            entity_id=str(venue.id),
            metadata=venue.summary(),
        )
    return venue


def verify_venue(s: "Session", venue_id: int, *, user: "User") -> Venue:
    venue = get_venue(s, venue_id)
    venue.verified_at = utcnow()
    venue.updated_at = venue.verified_at
    record_event(
        s,
        actor=user,
        action="venue.verify",
        entity_type="Venue",
        entity_id=str(venue.id),
        metadata=venue.summary(),
    )
    return venue


def clean_venue_update(data: Mapping[str, Any]) -> dict[str, Any]:
    """Admin edit payload: looser than a submission (city/postcode optional, tags may be empty)."""
    if not isinstance(data, Mapping):
        raise ValidationError({"body": ["Request body must be a JSON object."]})

    errors = FieldErrors()
    out: dict[str, Any] = {}

    name = text_field(data, "name", errors)
    if not name or len(name) < 2:
        errors.add("name", "Venue name must be at least 2 characters.")
    elif len(name) > 120:
        errors.add("name", "Venue name is too long.")
    out["name"] = name

    for key, max_len in (
        ("description", 800),
        ("phone", 30),
        ("address1", 255),
        ("address2", 255),
        ("city", 128),
        ("postcode", 16),
        ("county", 128),
    ):
        out[key] = text_field(data, key, errors, max_len=max_len)

    out["website"] = url_field(data, "website", errors, message="Website must be a valid URL.", max_len=512)
    out["coverImageUrl"] = url_field(data, "coverImageUrl", errors, message="Cover image must be a valid URL.")
    out["tags"] = clean_tags(data.get("tags"), errors, required=False)
    # Gallery cap applies to the merged result, not the increment.
    out["imageUrls"] = url_list_field(data, "imageUrls", errors, max_items=None)

    mode = data.get("imageMode") or "APPEND"
    if mode not in IMAGE_MODES:
        errors.add("imageMode", "Must be REPLACE or APPEND.")
    out["imageMode"] = mode

    sensory = clean_sensory(data.get("sensory"), errors)
    if sensory is not None:
        out["sensory"] = sensory
    facilities = clean_facilities(data.get("facilities"), errors)
    if facilities is not None:
        out["facilities"] = facilities

    errors.raise_if_any()
    return out


def update_venue(
    s: "Session",
    venue_id: int,
    data: Mapping[str, Any],
    *,
    user: "User",
    geocoder: "CachingGeocoder | None" = None,
) -> Venue:
    cleaned = clean_venue_update(data)
    venue = get_venue(s, venue_id)

    old_postcode = venue.postcode
    before = venue.to_dict()

    cleaned["imageUrls"] = merge_gallery(venue.image_urls, cleaned["imageUrls"], cleaned["imageMode"])
    apply_venue_fields(venue, cleaned, name_key="name")

    if venue.postcode != old_postcode:
        if venue.postcode:
            if geocoder is None:
                from app.quietmap.modules.geo.geocoder import get_geocoder

                geocoder = get_geocoder()
            venue.set_geo(geocoder.resolve(venue.postcode))
        else:
            venue.set_geo(None)

    after = venue.to_dict()
    changes = {k: {"old": before[k], "new": after[k]} for k in after if before.get(k) != after[k]}
    record_event(
        s,
        actor=user,
        action="venue.edit",
        entity_type="Venue",
        entity_id=str(venue.id),
        metadata={"name": venue.name, "changes": changes},
    )
    return venue


def backfill_geo(
    s: "Session",
    *,
    limit: int | None = None,
    geocoder: "CachingGeocoder | None" = None,
    user: "User | None" = None,
) -> dict[str, int]:
    """
    Geocode non-archived venues that have a postcode but no coordinates.
    Caller commits.
    """
    limit = max(1, min(int(BACKFILL_DEFAULT_LIMIT if limit is None else limit), BACKFILL_MAX_LIMIT))
    if geocoder is None:
        from app.quietmap.modules.geo.geocoder import get_geocoder

        geocoder = get_geocoder()

    stmt = (
        select(Venue)
        .where(
            Venue.archived_at.is_(None),
            Venue.postcode.is_not(None),
            Venue.postcode != "",
            (Venue.lat.is_(None)) | (Venue.lng.is_(None)),
        )
        .order_by(Venue.id.asc())
        .limit(limit)
    )
    venues = list(s.execute(stmt).scalars())

    updated = 0
    skipped = 0
    for venue in venues:
        coords = geocoder.resolve(venue.postcode)
        if coords is None:
            skipped += 1
            continue
        venue.set_geo(coords)
        venue.updated_at = utcnow()
        updated += 1

    logger.info("Geo backfill: scanned=%s updated=%s skipped=%s", len(venues), updated, skipped)
    record_event(
        s,
        actor=user,
        action="venue.backfill_geo",
        entity_type="Venue",
        metadata={"scanned": len(venues), "updated": updated, "skipped": skipped, "limit": limit},
    )
    return {"scanned": len(venues), "updated": updated, "skipped": skipped}
