from __future__ import annotations

from flask import Blueprint, g, request

from app.quietmap.api import json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.errors import ValidationError
from app.quietmap.models import User
from app.quietmap.modules.reviews.models import ReportStatus, ReviewReport
from app.quietmap.modules.reviews.moderation import (
    delete_review,
    delete_review_and_resolve_report,
    dismiss_report,
    resolve_report,
    set_review_visibility,
)
from app.quietmap.rbac import require_permission
from app.quietmap.validation import FieldErrors, flag_field

bp = Blueprint("reviews_admin", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _note(body: dict) -> str | None:
    note = body.get("resolutionNote")
    return note if isinstance(note, str) else None


# ---------- Reviews ----------
@bp.patch("/reviews/<int:review_id>")
@require_permission("reviews.moderate")
def review_visibility(review_id: int):
    """Body {"hidden": bool} sets visibility; an empty body toggles it."""
    s = db_session()
    body = json_body(required=False)
    errors = FieldErrors()
    hidden = flag_field(body, "hidden", errors)
    errors.raise_if_any()
    with unit_of_work(s):
        review, stats = set_review_visibility(s, review_id, user=_current_user(), hidden=hidden)
    return {"ok": True, "hidden": review.is_hidden, "venue": stats.to_dict()}


@bp.delete("/reviews/<int:review_id>")
@require_permission("reviews.moderate")
def review_delete(review_id: int):
    s = db_session()
    with unit_of_work(s):
        stats = delete_review(s, review_id, user=_current_user())
    return {"ok": True, "venue": stats.to_dict()}


# ---------- Reports ----------
@bp.get("/review-reports")
@require_permission("reports.moderate")
def reports_list():
    s = db_session()
    status = (request.args.get("status") or ReportStatus.OPEN.value).strip().upper()
    rows = (
        s.query(ReviewReport)
        .filter(ReviewReport.status == status)
        .order_by(ReviewReport.created_at.asc())
        .limit(200)
        .all()
    )
    return {"ok": True, "reports": [r.to_dict() for r in rows]}


def _resolve(report_id: int, note: str | None):
    s = db_session()
    with unit_of_work(s):
        report, stats = resolve_report(s, report_id, user=_current_user(), note=note)
    return {"ok": True, "report": report.to_dict(), "venue": stats.to_dict() if stats else None}


def _dismiss(report_id: int, note: str | None):
    s = db_session()
    with unit_of_work(s):
        report = dismiss_report(s, report_id, user=_current_user(), note=note)
    return {"ok": True, "report": report.to_dict()}


@bp.patch("/review-reports/<int:report_id>")
@require_permission("reports.moderate")
def report_update(report_id: int):
    body = json_body()
    status = body.get("status")
    if status == ReportStatus.RESOLVED.value:
        return _resolve(report_id, _note(body))
    if status == ReportStatus.DISMISSED.value:
        return _dismiss(report_id, _note(body))
    raise ValidationError({"status": ["Must be RESOLVED or DISMISSED."]}, message="Invalid status.")


@bp.post("/review-reports/<int:report_id>/resolve")
@require_permission("reports.moderate")
def report_resolve(report_id: int):
    return _resolve(report_id, _note(json_body(required=False)))


@bp.post("/review-reports/<int:report_id>/dismiss")
@require_permission("reports.moderate")
def report_dismiss(report_id: int):
    return _dismiss(report_id, _note(json_body(required=False)))


@bp.post("/review-reports/<int:report_id>/delete-review")
@require_permission("reports.moderate")
def report_delete_review(report_id: int):
    """Commits twice; see delete_review_and_resolve_report."""
    s = db_session()
    report, stats = delete_review_and_resolve_report(
        s,
        report_id,
        user=_current_user(),
        note=_note(json_body(required=False)),
    )
    return {"ok": True, "report": report.to_dict(), "venue": stats.to_dict()}
