"""
Postcode geocoding.

`PostcodesIoClient` talks to a postcodes.io compatible service and knows nothing
about caching. `CachingGeocoder` wraps any object with a `lookup(postcode)`
method, keeps successful results for a bounded time, and turns every failure
into `None` so callers can treat geocoding as best-effort.
"""
from __future__ import annotations

import json
import logging
import math
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from app.quietmap.errors import ExternalServiceError
from app.quietmap.modules.geo.geohash import encode as geohash_encode
from app.quietmap.modules.geo.postcodes import normalize_postcode

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SECONDS = 60 * 60


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def geohash(self, precision: int = 9) -> str:
        return geohash_encode(self.lat, self.lng, precision)


class PostcodeLookup(Protocol):
    def lookup(self, postcode: str) -> Coordinates | None: ...


def _as_coordinate(v: Any) -> float | None:
    # bool is an int subclass; postcodes.io never sends booleans for coordinates.
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    f = float(v)
    return f if math.isfinite(f) else None


def coordinates_from_payload(payload: Any) -> Coordinates | None:
    """Extract result.latitude/result.longitude; anything missing or non-numeric -> None."""
    if not isinstance(payload, Mapping):
        return None
    result = payload.get("result")
    if not isinstance(result, Mapping):
        return None
    lat = _as_coordinate(result.get("latitude"))
    lng = _as_coordinate(result.get("longitude"))
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


@dataclass(frozen=True)
class PostcodesIoClient:
    base_url: str = "https://api.postcodes.io"
    timeout_seconds: float = 5.0

    def lookup(self, postcode: str) -> Coordinates | None:
        pc = normalize_postcode(postcode)
        if not pc:
            return None

        url = self.base_url.rstrip("/") + "/postcodes/" + urllib.parse.quote(pc)
        req = urllib.request.Request(url, method="GET")
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 429 or e.code >= 500:
                raise ExternalServiceError(f"HTTP {e.code} from geocoder for {pc}") from e
            # 404 (unknown postcode) and other client errors: nothing to resolve.
            logger.info("Geocoder returned HTTP %s for postcode=%s", e.code, pc)
            return None
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ExternalServiceError(f"Geocoder request failed for {pc}: {e}") from e

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Geocoder returned invalid JSON for postcode=%s", pc)
            return None
        return coordinates_from_payload(payload)


class CachingGeocoder:
    """
    Process-wide postcode -> Coordinates cache around a raw lookup.

    Entries expire `ttl_seconds` after they were stored and are evicted lazily on
    read. Only successful lookups are cached.
    """

    def __init__(
        self,
        lookup: PostcodeLookup,
        *,
        ttl_seconds: float = DEFAULT_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lookup = lookup
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Coordinates, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def resolve(self, postcode: str | None) -> Coordinates | None:
        pc = normalize_postcode(postcode)
        if not pc:
            return None

        now = self._clock()
        with self._lock:
            hit = self._entries.get(pc)
            if hit is not None:
                coords, stored_at = hit
                if now - stored_at < self._ttl:
                    return coords
                del self._entries[pc]

        # The lookup runs outside the lock; two callers may both miss and both fetch.
        try:
            coords = self._lookup.lookup(pc)
        except ExternalServiceError as e:
            logger.warning("Geocoding unavailable for postcode=%s: %s", pc, e)
            return None

        if coords is None:
            return None

        with self._lock:
            self._entries[pc] = (coords, self._clock())
        return coords


def geocoder_from_config(config: Mapping[str, Any]) -> CachingGeocoder:
    client = PostcodesIoClient(
        base_url=str(config.get("GEOCODER_BASE_URL") or "https://api.postcodes.io"),
        timeout_seconds=float(config.get("GEOCODER_TIMEOUT_SECONDS") or 5.0),
    )
    return CachingGeocoder(client, ttl_seconds=float(config.get("GEOCODER_CACHE_SECONDS") or DEFAULT_CACHE_SECONDS))


def get_geocoder() -> CachingGeocoder:
    """The application's shared geocoder (created in create_app)."""
    from flask import current_app

    return current_app.extensions["geocoder"]
