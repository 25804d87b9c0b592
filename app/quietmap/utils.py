from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns are stored without tz."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_str(v: Any) -> str | None:
    """Strip strings; empty or non-string values become None."""
    if not isinstance(v, str):
        return None
    v = v.strip()
    return v or None


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None
