"""
Canonical venue records: duplicate detection and admin maintenance.
"""
