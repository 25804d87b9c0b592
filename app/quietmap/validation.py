"""
Field-level helpers shared by the payload validators.

Each helper reads one key, records messages on a FieldErrors collector under a
(possibly dotted) field name, and returns the cleaned value or None.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.quietmap.errors import ValidationError
from app.quietmap.constants import MAX_GALLERY_IMAGES, SENSORY_LEVELS
from app.quietmap.utils import is_http_url

SENSORY_LEVEL_FIELDS = ("noiseLevel", "lighting", "crowding")
SENSORY_FLAG_FIELDS = ("quietSpace", "sensoryHours")
FACILITY_FLAG_FIELDS = ("parking", "accessibleToilet", "babyChange", "wheelchairAccess", "staffTrained")


class FieldErrors:
    def __init__(self) -> None:
        self.fields: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        msgs = self.fields.setdefault(field, [])
        if message not in msgs:
            msgs.append(message)

    def __bool__(self) -> bool:
        return bool(self.fields)

    def raise_if_any(self) -> None:
        if self.fields:
            raise ValidationError(self.fields)


def text_field(
    data: Mapping[str, Any],
    key: str,
    errors: FieldErrors,
    *,
    field: str | None = None,
    max_len: int | None = None,
) -> str | None:
    """Optional text: None/blank -> None, non-string -> error."""
    field = field or key
    v = data.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        errors.add(field, "Must be text.")
        return None
    v = v.strip()
    if not v:
        return None
    if max_len is not None and len(v) > max_len:
        errors.add(field, f"Must be {max_len} characters or less.")
    return v


def flag_field(data: Mapping[str, Any], key: str, errors: FieldErrors, *, field: str | None = None) -> bool | None:
    v = data.get(key)
    if v is None:
        return None
    if not isinstance(v, bool):
        errors.add(field or key, "Must be true or false.")
        return None
    return v


def level_field(data: Mapping[str, Any], key: str, errors: FieldErrors, *, field: str | None = None) -> str | None:
    v = data.get(key)
    if v is None or v == "":
        return None
    if v not in SENSORY_LEVELS:
        errors.add(field or key, f"Must be one of: {', '.join(SENSORY_LEVELS)}.")
        return None
    return v


def url_field(data: Mapping[str, Any], key: str, errors: FieldErrors, *, message: str, max_len: int = 1024) -> str | None:
    v = text_field(data, key, errors, max_len=max_len)
    if v is not None and not is_http_url(v):
        errors.add(key, message)
    return v


def url_list_field(
    data: Mapping[str, Any], key: str, errors: FieldErrors, *, max_items: int | None = MAX_GALLERY_IMAGES
) -> list[str]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        errors.add(key, "Gallery images must be a list.")
        return []
    urls: list[str] = []
    for u in raw:
        if not isinstance(u, str):
            errors.add(key, "Each gallery image must be a valid URL.")
            continue
        u = u.strip()
        if not u:
            continue
        if not is_http_url(u):
            errors.add(key, "Each gallery image must be a valid URL.")
            continue
        urls.append(u)
    if max_items is not None and len(urls) > max_items:
        errors.add(key, f"You can upload up to {max_items} gallery images.")
    return urls


def clean_sensory(raw: Any, errors: FieldErrors) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        errors.add("sensory", "Sensory details must be an object.")
        return None
    out: dict[str, Any] = {}
    for key in SENSORY_LEVEL_FIELDS:
        v = level_field(raw, key, errors, field=f"sensory.{key}")
        if v is not None:
            out[key] = v
    for key in SENSORY_FLAG_FIELDS:
        v = flag_field(raw, key, errors, field=f"sensory.{key}")
        if v is not None:
            out[key] = v
    notes = text_field(raw, "notes", errors, field="sensory.notes", max_len=600)
    if notes:
        out["notes"] = notes
    return out


def clean_facilities(raw: Any, errors: FieldErrors) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        errors.add("facilities", "Facilities must be an object.")
        return None
    out: dict[str, Any] = {}
    for key in FACILITY_FLAG_FIELDS:
        v = flag_field(raw, key, errors, field=f"facilities.{key}")
        if v is not None:
            out[key] = v
    notes = text_field(raw, "notes", errors, field="facilities.notes", max_len=600)
    if notes:
        out["notes"] = notes
    return out


def clean_tags(raw: Any, errors: FieldErrors, *, required: bool = True) -> list[str]:
    if raw is None:
        if required:
            errors.add("tags", "Pick at least 1 tag.")
        return []
    if not isinstance(raw, (list, tuple)):
        errors.add("tags", "Tags must be a list.")
        return []
    tags: list[str] = []
    for t in raw:
        if not isinstance(t, str):
            errors.add("tags", "Each tag must be text.")
            continue
        t = t.strip()
        if t and t not in tags:
            tags.append(t)
    if required and not tags:
        errors.add("tags", "Pick at least 1 tag.")
    return tags
