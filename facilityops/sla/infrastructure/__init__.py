"""
SLA Infrastructure Layer
========================

YAML configuration with hot reload, Slack escalation, and the scheduler
for periodic SLA jobs.
"""

from facilityops.sla.infrastructure.config import ConfigFileHandler, SLAConfigManager
from facilityops.sla.infrastructure.scheduler import SLAScheduler
from facilityops.sla.infrastructure.slack import CircuitBreaker, CircuitState, SlackClient

__all__ = [
    "ConfigFileHandler",
    "SLAConfigManager",
    "SLAScheduler",
    "CircuitBreaker",
    "CircuitState",
    "SlackClient",
]
