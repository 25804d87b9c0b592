"""
Reviews, review reports and the venue review aggregates they drive.
"""
