"""Feature modules: geo, venues, submissions, reviews."""
