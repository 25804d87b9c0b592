from datetime import date, datetime, time, timedelta

from flask import Blueprint, g, request

from app.quietmap.accounts import set_admin_role
from app.quietmap.api import json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.errors import ConflictError, ValidationError
from app.quietmap.models import AuditEvent, User
from app.quietmap.modules.reviews.models import ReportStatus, ReviewReport
from app.quietmap.modules.submissions.models import SubmissionStatus, VenueSubmission
from app.quietmap.rbac import require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    pending = s.query(VenueSubmission).filter(VenueSubmission.status == SubmissionStatus.PENDING.value).count()
    open_reports = s.query(ReviewReport).filter(ReviewReport.status == ReportStatus.OPEN.value).count()
    return {"ok": True, "pendingSubmissions": pending, "openReports": open_reports}


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Last 200 audit events with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        raise ValidationError({"date_from": ["date_from must be YYYY-MM-DD"]}, message="Invalid request")
    if (request.args.get("date_to") or "").strip() and not date_to:
        raise ValidationError({"date_to": ["date_to must be YYYY-MM-DD"]}, message="Invalid request")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return {
        "ok": True,
        "events": [
            {
                "id": e.id,
                "createdAt": e.created_at.isoformat(),
                "action": e.action,
                "actor": e.actor_user_email,
                "entityType": e.entity_type,
                "entityId": e.entity_id,
                "reason": e.reason,
                "requestId": e.request_id,
            }
            for e in events
        ],
    }


@bp.patch("/accounts/<int:user_id>/role")
@require_permission("accounts.edit")
def accounts_role(user_id: int):
    s = db_session()
    u = _current_user()
    body = json_body()
    role = body.get("role")
    if role not in ("USER", "ADMIN"):
        raise ValidationError({"role": ["Must be USER or ADMIN."]}, message="Invalid body")
    if user_id == u.id:
        raise ConflictError("You cannot change your own role.")

    with unit_of_work(s):
        user = set_admin_role(s, user_id, make_admin=role == "ADMIN", actor=u)
    return {"ok": True, "userId": user.id, "role": "ADMIN" if user.is_admin else "USER"}
