"""
Geocode venues that have a postcode but no coordinates.

Run: python scripts/backfill_geo.py [--limit 50]
"""
from __future__ import annotations

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.quietmap import create_app
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.modules.venues.service import backfill_geo


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--limit", type=int, default=None, help="Venues per run (1-200, default 50)")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        s = db_session()
        with unit_of_work(s):
            result = backfill_geo(s, limit=args.limit)

    print(f"Scanned {result['scanned']}, updated {result['updated']}, skipped {result['skipped']}")


if __name__ == "__main__":
    main()
