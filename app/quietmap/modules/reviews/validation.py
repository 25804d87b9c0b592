from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from app.quietmap.constants import REPORT_REASONS
from app.quietmap.errors import ValidationError
from app.quietmap.validation import FieldErrors, flag_field, level_field, text_field

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _rating(v: Any, errors: FieldErrors) -> int | None:
    # Form posts send "4"; accept whole numbers in either shape.
    if isinstance(v, bool):
        v = None
    elif isinstance(v, str):
        try:
            v = float(v.strip())
        except ValueError:
            v = None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    if not isinstance(v, int) or not 1 <= v <= 5:
        errors.add("rating", "Pick a rating 1–5.")
        return None
    return v


def clean_review(data: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError({"body": ["Request body must be a JSON object."]})

    errors = FieldErrors()
    out: dict[str, Any] = {"rating": _rating(data.get("rating"), errors)}

    title = text_field(data, "title", errors)
    if title and len(title) > 80:
        errors.add("title", "Title must be 80 characters or less.")
    out["title"] = title

    content = text_field(data, "content", errors)
    if content and len(content) > 1200:
        errors.add("content", "Review must be 1200 characters or less.")
    out["content"] = content

    hint = text_field(data, "visitTimeHint", errors)
    if hint and not _ISO_DATE_RE.match(hint):
        errors.add("visitTimeHint", "Please choose a valid date.")
    out["visitTimeHint"] = hint

    for key in ("noiseLevel", "lighting", "crowding"):
        out[key] = level_field(data, key, errors)
    for key in ("quietSpace", "sensoryHours"):
        out[key] = flag_field(data, key, errors)

    errors.raise_if_any()
    return out


def clean_report(data: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError({"body": ["Request body must be a JSON object."]}, message="Please fix the report fields.")

    errors = FieldErrors()
    reason = data.get("reason")
    if reason not in REPORT_REASONS:
        errors.add("reason", f"Must be one of: {', '.join(REPORT_REASONS)}.")

    message = text_field(data, "message", errors)
    if message and len(message) > 500:
        errors.add("message", "Message must be 500 characters or less.")

    if errors:
        raise ValidationError(errors.fields, message="Please fix the report fields.")
    return {"reason": reason, "message": message}
