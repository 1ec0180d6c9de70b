"""
Tickets Module
==============

Ticket lifecycle: creation, guarded status transitions with conditional
updates, edits, soft/hard delete, activity log and history export.
"""
