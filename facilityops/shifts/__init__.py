"""
Shifts Module
=============

Resolver attendance: check-in/check-out per property. A check-in makes the
resolver preferred by dispatch and triggers waitlist reconciliation.
"""
