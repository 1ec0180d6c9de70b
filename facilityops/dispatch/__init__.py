"""
Dispatch Module
===============

Resolver selection for new and waitlisted tickets, check-in driven waitlist
reconciliation, and dispatcher-initiated bulk dispatch.
"""
