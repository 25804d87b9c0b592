"""
Geo helpers: geohash encoding, UK postcode normalization and best-effort geocoding.

Nothing here touches the database; venue code decides what to persist.
"""
