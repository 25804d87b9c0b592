from __future__ import annotations

from flask import Blueprint

from app.quietmap.api import json_body
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.errors import ValidationError
from app.quietmap.modules.submissions.service import create_submission
from app.quietmap.rbac import current_user

bp = Blueprint("submissions", __name__)


def _optional_int(v) -> int | None:
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        raise ValidationError({"venueId": ["Must be a venue id."]}, message="Invalid request")
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ValidationError({"venueId": ["Must be a venue id."]}, message="Invalid request")


@bp.post("/api/submissions")
def submissions_create():
    """Anyone may propose a venue or an edit; moderators decide."""
    s = db_session()
    body = json_body()
    with unit_of_work(s):
        sub = create_submission(
            s,
            payload=body.get("payload"),
            proposed_name=body.get("proposedName") if isinstance(body.get("proposedName"), str) else None,
            submission_type=body.get("type"),
            venue_id=_optional_int(body.get("venueId")),
            submitted_by=body.get("submittedBy") if isinstance(body.get("submittedBy"), str) else None,
            user=current_user(),
        )
    return {
        "ok": True,
        "submission": {"id": sub.id, "status": sub.status, "createdAt": sub.to_dict()["createdAt"]},
    }, 201
