from __future__ import annotations

from flask import Blueprint, g

from app.quietmap.api import json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.errors import ValidationError
from app.quietmap.models import User
from app.quietmap.modules.reviews.stats import recompute_all_venue_stats
from app.quietmap.modules.venues.service import (
    archive_venue,
    backfill_geo,
    get_venue,
    unarchive_venue,
    update_venue,
    verify_venue,
)
from app.quietmap.rbac import require_permission

bp = Blueprint("venues_admin", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/venues/<int:venue_id>")
@require_permission("admin.view")
def venue_detail(venue_id: int):
    return {"ok": True, "venue": get_venue(db_session(), venue_id).to_dict()}


@bp.patch("/venues/<int:venue_id>")
@require_permission("venues.edit")
def venue_update(venue_id: int):
    s = db_session()
    body = json_body()
    with unit_of_work(s):
        venue = update_venue(s, venue_id, body, user=_current_user())
    return {"ok": True, "venue": venue.to_dict()}


@bp.post("/venues/<int:venue_id>/archive")
@require_permission("venues.edit")
def venue_archive(venue_id: int):
    s = db_session()
    body = json_body(required=False)
    reason = body.get("reason") if isinstance(body.get("reason"), str) else None
    with unit_of_work(s):
        venue = archive_venue(s, venue_id, user=_current_user(), reason=reason)
    return {"ok": True, "archivedAt": venue.to_dict()["archivedAt"]}


@bp.post("/venues/<int:venue_id>/unarchive")
@require_permission("venues.edit")
def venue_unarchive(venue_id: int):
    s = db_session()
    with unit_of_work(s):
        unarchive_venue(s, venue_id, user=_current_user())
    return {"ok": True, "archivedAt": None}


@bp.post("/venues/<int:venue_id>/verify")
@require_permission("venues.edit")
def venue_verify(venue_id: int):
    s = db_session()
    with unit_of_work(s):
        venue = verify_venue(s, venue_id, user=_current_user())
    return {"ok": True, "verifiedAt": venue.to_dict()["verifiedAt"]}


@bp.post("/venues/backfill-geo")
@require_permission("venues.edit")
def venues_backfill_geo():
    s = db_session()
    body = json_body(required=False)
    limit = body.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int)):
        raise ValidationError({"limit": ["Must be a whole number."]}, message="Invalid request")
    with unit_of_work(s):
        result = backfill_geo(s, limit=limit, user=_current_user())
    return {"ok": True, **result}


@bp.post("/venues/recompute-stats")
@require_permission("reviews.moderate")
def venues_recompute_stats():
    s = db_session()
    with unit_of_work(s):
        count = recompute_all_venue_stats(s)
    return {"ok": True, "venues": count}
