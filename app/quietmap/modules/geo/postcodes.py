"""
UK postcode string handling.

Venues store the canonical spaced form ("LS1 2AB"). Older rows may hold the
compact form ("LS12AB"), so lookups that must match historical data query both.
"""
from __future__ import annotations

import re

# Practical UK pattern: optional space, covers EC1A 1BB, W1A 0AX, M1 1AE and GIR 0AA.
UK_POSTCODE_RE = re.compile(r"^(GIR\s?0AA|(?:[A-Z]{1,2}\d{1,2}[A-Z]?)\s?\d[A-Z]{2})$", re.IGNORECASE)

_WS_RE = re.compile(r"\s+")


def normalize_postcode(postcode: str | None) -> str:
    """Uppercase and collapse internal whitespace (cache key / lookup form)."""
    return _WS_RE.sub(" ", (postcode or "").strip().upper())


def compact_postcode(postcode: str | None) -> str:
    return _WS_RE.sub("", (postcode or "").upper())


def format_postcode(postcode: str | None) -> str:
    """
    Canonical storage form: no spaces except one before the inward code.
    "ls211aa" -> "LS21 1AA"
    """
    raw = compact_postcode(postcode)
    if len(raw) <= 3:
        return raw
    return f"{raw[:-3]} {raw[-3:]}"


def postcode_variants(postcode: str | None) -> list[str]:
    """Distinct stored forms a postcode may appear under (spaced, compact)."""
    out: list[str] = []
    for v in (format_postcode(postcode), compact_postcode(postcode)):
        if v and v not in out:
            out.append(v)
    return out


def is_uk_postcode(postcode: str | None) -> bool:
    return bool(UK_POSTCODE_RE.match((postcode or "").strip()))
