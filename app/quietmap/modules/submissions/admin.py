from __future__ import annotations

from flask import Blueprint, g

from app.quietmap.api import flag_arg, json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.models import User
from app.quietmap.modules.submissions.models import SubmissionStatus, VenueSubmission
from app.quietmap.modules.submissions.service import (
    approve_submission,
    edit_submission,
    get_submission,
    reject_submission,
)
from app.quietmap.rbac import require_permission
from app.quietmap.validation import FieldErrors, flag_field

bp = Blueprint("submissions_admin", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/submissions")
@require_permission("submissions.moderate")
def submissions_list():
    s = db_session()
    rows = (
        s.query(VenueSubmission)
        .filter(VenueSubmission.status == SubmissionStatus.PENDING.value)
        .order_by(VenueSubmission.created_at.asc())
        .limit(200)
        .all()
    )
    return {"ok": True, "submissions": [r.to_dict() for r in rows]}


@bp.get("/submissions/<int:submission_id>")
@require_permission("submissions.moderate")
def submission_detail(submission_id: int):
    s = db_session()
    return {"ok": True, "submission": get_submission(s, submission_id).to_dict()}


@bp.post("/submissions/<int:submission_id>/approve")
@require_permission("submissions.moderate")
def submission_approve(submission_id: int):
    s = db_session()
    body = json_body(required=False)
    errors = FieldErrors()
    verify = flag_field(body, "verify", errors)
    errors.raise_if_any()
    with unit_of_work(s):
        venue_id = approve_submission(
            s,
            submission_id,
            user=_current_user(),
            force=flag_arg("force"),
            verify=bool(verify),
        )
    return {"ok": True, "venueId": venue_id}


@bp.post("/submissions/<int:submission_id>/reject")
@require_permission("submissions.moderate")
def submission_reject(submission_id: int):
    s = db_session()
    body = json_body(required=False)
    reason = body.get("reason") if isinstance(body.get("reason"), str) else None
    with unit_of_work(s):
        reject_submission(s, submission_id, user=_current_user(), reason=reason)
    return {"ok": True}


@bp.patch("/submissions/<int:submission_id>")
@require_permission("submissions.moderate")
def submission_edit(submission_id: int):
    s = db_session()
    body = json_body()
    proposed_name = body.get("proposedName") if isinstance(body.get("proposedName"), str) else None
    with unit_of_work(s):
        sub = edit_submission(
            s,
            submission_id,
            user=_current_user(),
            payload=body.get("payload"),
            proposed_name=proposed_name,
        )
    return {"ok": True, "submission": sub.to_dict()}
