"""
SLA Monitoring Module
=====================

Bounded Context for ticket service-level timers.

Responsibilities:
- Pause-aware elapsed service time and breach predicate
- Resolution time excluding pause windows
- Thresholds per priority (with per-category overrides) from YAML, hot reloaded
- Periodic breach scan fanned out to property admins, optional Slack escalation
- Grace-period auto-close of resolved tickets
- SLA status and dashboard API
"""

__version__ = "1.0.0"
