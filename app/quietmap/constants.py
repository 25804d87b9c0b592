"""
Central constants for the quietmap application.
"""
from __future__ import annotations

# Sensory levels shared by venues and reviews
SENSORY_LEVELS = ("VERY_LOW", "LOW", "MEDIUM", "HIGH", "VERY_HIGH")

# Venue gallery cap
MAX_GALLERY_IMAGES = 10

# Geohash precision stored on venues
GEOHASH_PRECISION = 9

# Duplicate detector cap
DUPLICATE_LIMIT = 10

# Geo backfill batch sizes
BACKFILL_DEFAULT_LIMIT = 50
BACKFILL_MAX_LIMIT = 200

REPORT_REASONS = ("SPAM", "HARASSMENT", "HATE", "OFF_TOPIC", "MISINFORMATION", "PRIVACY", "OTHER")
