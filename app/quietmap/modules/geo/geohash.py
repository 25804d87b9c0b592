from __future__ import annotations

GEOHASH_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"


def encode(lat: float, lng: float, precision: int = 9) -> str:
    """
    Geohash for (lat, lng).

    Interleaves bisection bits of the longitude and latitude ranges, longitude
    first, and emits one base-32 character per 5 bits.
    """
    if precision < 1:
        raise ValueError(f"precision must be >= 1 (got {precision})")

    lat_min, lat_max = -90.0, 90.0
    lng_min, lng_max = -180.0, 180.0

    out: list[str] = []
    idx = 0
    bit = 0
    even_bit = True

    while len(out) < precision:
        if even_bit:
            mid = (lng_min + lng_max) / 2
            if lng >= mid:
                idx = (idx << 1) + 1
                lng_min = mid
            else:
                idx = idx << 1
                lng_max = mid
        else:
            mid = (lat_min + lat_max) / 2
            if lat >= mid:
                idx = (idx << 1) + 1
                lat_min = mid
            else:
                idx = idx << 1
                lat_max = mid

        even_bit = not even_bit
        bit += 1
        if bit == 5:
            out.append(GEOHASH_BASE32[idx])
            bit = 0
            idx = 0

    return "".join(out)
