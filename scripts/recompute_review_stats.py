"""
Rebuild every venue's review aggregates from the reviews table.

Run: python scripts/recompute_review_stats.py
"""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.quietmap import create_app
from app.quietmap.db import db_session, unit_of_work
from app.quietmap.modules.reviews.stats import recompute_all_venue_stats


def main() -> None:
    app = create_app()
    with app.app_context():
        s = db_session()
        with unit_of_work(s):
            count = recompute_all_venue_stats(s)

    print(f"Recomputed review stats for {count} venues")


if __name__ == "__main__":
    main()
