"""
Structural validation for venue submission payloads.

`clean_venue_submission` is the single gate used on create, edit and (again) on
approval. It returns a cleaned copy of the payload (trimmed strings, unknown keys
dropped) or raises ValidationError with one list of messages per field.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from app.quietmap.errors import ValidationError
from app.quietmap.modules.geo.postcodes import is_uk_postcode
from app.quietmap.validation import (
    FieldErrors,
    clean_facilities,
    clean_sensory,
    clean_tags,
    text_field,
    url_field,
    url_list_field,
)

_DIGITS_RE = re.compile(r"^\d+$")


def clean_phone(data: Mapping[str, Any], errors: FieldErrors) -> str | None:
    phone = text_field(data, "phone", errors)
    if phone is None:
        return None
    if not _DIGITS_RE.match(phone):
        errors.add("phone", "Phone number must contain numbers only (digits).")
    elif not 7 <= len(phone) <= 30:
        errors.add("phone", "Phone number must be between 7 and 30 digits.")
    return phone


def clean_venue_submission(data: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError({"payload": ["Submission payload must be an object."]})

    errors = FieldErrors()
    out: dict[str, Any] = {}

    name = text_field(data, "proposedName", errors)
    if not name or len(name) < 2:
        errors.add("proposedName", "Venue name must be at least 2 characters.")
    elif len(name) > 120:
        errors.add("proposedName", "Venue name is too long.")
    out["proposedName"] = name

    for key, max_len in (("description", 800), ("address1", 255), ("address2", 255), ("county", 128)):
        v = text_field(data, key, errors, max_len=max_len)
        if v is not None:
            out[key] = v

    website = url_field(data, "website", errors, message="Website must be a valid URL (e.g. https://example.com).", max_len=512)
    if website is not None:
        out["website"] = website

    phone = clean_phone(data, errors)
    if phone is not None:
        out["phone"] = phone

    city = text_field(data, "city", errors, max_len=128)
    if not city or len(city) < 2:
        errors.add("city", "City is required.")
    out["city"] = city

    postcode = text_field(data, "postcode", errors)
    if not postcode:
        errors.add("postcode", "Postcode is required.")
    elif not is_uk_postcode(postcode):
        errors.add("postcode", "Postcode must be a valid UK postcode.")
    out["postcode"] = postcode

    out["tags"] = clean_tags(data.get("tags"), errors)

    cover = url_field(data, "coverImageUrl", errors, message="Cover image must be a valid URL.")
    if cover is not None:
        out["coverImageUrl"] = cover

    gallery = url_list_field(data, "imageUrls", errors)
    if gallery:
        out["imageUrls"] = gallery

    sensory = clean_sensory(data.get("sensory"), errors)
    if sensory is not None:
        out["sensory"] = sensory

    facilities = clean_facilities(data.get("facilities"), errors)
    if facilities is not None:
        out["facilities"] = facilities

    errors.raise_if_any()
    return out


def merge_submission_input(payload: Any, proposed_name: str | None) -> dict[str, Any]:
    """
    Stored payloads carry proposedName too; an explicit proposed_name wins.
    A payload that is not an object is rejected outright.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError({"payload": ["Submission payload must be an object."]})
    merged: dict[str, Any] = dict(payload)
    if proposed_name is not None:
        merged["proposedName"] = proposed_name
    return merged
