from __future__ import annotations

from flask import Blueprint

from app.quietmap.api import client_ip, json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.modules.reviews.service import create_review, get_own_review, report_review, update_own_review
from app.quietmap.rbac import current_user, require_login

bp = Blueprint("reviews", __name__)


@bp.get("/api/venues/<int:venue_id>/reviews")
def my_review(venue_id: int):
    """The signed-in user's review for this venue, or null."""
    user = current_user()
    if user is None:
        return {"review": None}
    review = get_own_review(db_session(), venue_id, user)
    return {"review": review.to_dict() if review else None}


@bp.post("/api/venues/<int:venue_id>/reviews")
@require_login
def review_create(venue_id: int):
    s = db_session()
    body = json_body()
    with unit_of_work(s):
        review, stats = create_review(s, venue_id, body, user=current_user())
    return {"ok": True, "review": review.to_dict(), "stats": stats.to_dict()}, 201


@bp.patch("/api/venues/<int:venue_id>/reviews")
@require_login
def review_update(venue_id: int):
    s = db_session()
    body = json_body()
    with unit_of_work(s):
        review, stats = update_own_review(s, venue_id, body, user=current_user())
    return {"ok": True, "review": review.to_dict(), "stats": stats.to_dict()}


@bp.post("/api/venues/<int:venue_id>/reviews/<int:review_id>/report")
def review_report(venue_id: int, review_id: int):
    s = db_session()
    body = json_body()
    with unit_of_work(s):
        report_review(s, venue_id, review_id, body, user=current_user(), reporter_ip=client_ip())
    return {"ok": True}, 201
