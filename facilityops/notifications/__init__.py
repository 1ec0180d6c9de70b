"""
Notifications Module
====================

Persisted, deduplicated notifications fanned out from ticket lifecycle
events and SLA breaches, pushed best-effort over the real-time channel.
"""
