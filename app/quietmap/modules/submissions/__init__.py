"""
Venue submissions: the PENDING -> APPROVED | REJECTED state machine.
"""
