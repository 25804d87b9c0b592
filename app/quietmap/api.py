"""
Small request helpers shared by the JSON blueprints.
"""
from __future__ import annotations

from typing import Any

from flask import request

from app.quietmap.errors import ValidationError


def json_body(*, required: bool = True) -> dict[str, Any]:
    """Parsed JSON object body; a missing body is {} unless `required`."""
    data = request.get_json(silent=True)
    if data is None:
        if required and request.content_length:
            raise ValidationError({"body": ["Request body must be valid JSON."]}, message="Invalid request")
        return {}
    if not isinstance(data, dict):
        raise ValidationError({"body": ["Request body must be a JSON object."]}, message="Invalid request")
    return data


def flag_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


def client_ip() -> str | None:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For") or ""
    first = forwarded.split(",")[0].strip()
    if first:
        return first[:64]
    real = (request.headers.get("X-Real-IP") or "").strip()
    if real:
        return real[:64]
    return request.remote_addr
