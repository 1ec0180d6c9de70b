"""
SLA Value Objects
==================

Pause-aware SLA arithmetic and the SLA configuration value object.

Elapsed service time is wall-clock time since creation minus every pause
window, including a pause that is still open. Everything here is pure and
takes `now` explicitly.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, Field, field_validator

from facilityops.config import (
    Priority, SLAState, TicketStatus,
    VALID_CATEGORIES, VALID_PRIORITIES,
)
from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD_HOURS: Dict[str, float] = {
    Priority.CRITICAL.value: 2.0,
    Priority.HIGH.value: 4.0,
    Priority.MEDIUM.value: 24.0,
    Priority.LOW.value: 72.0,
}


class SLATracked(Protocol):
    """Fields the SLA timer reads and writes on a ticket."""
    id: str
    status: TicketStatus
    priority: Priority
    category: str
    created_at: datetime
    resolved_at: Optional[datetime]
    sla_paused: bool
    sla_pause_started_at: Optional[datetime]
    sla_accumulated_pause_seconds: float


class SLACalculator:
    """
    Pure functions for SLA calculations.

    Stateless utility class - all SLA timer logic in one place.
    """

    @staticmethod
    def pause(ticket: SLATracked, now: datetime) -> bool:
        """Start a pause window. Returns False if one is already open."""
        if ticket.sla_paused:
            return False
        ticket.sla_paused = True
        ticket.sla_pause_started_at = now
        return True

    @staticmethod
    def resume(ticket: SLATracked, now: datetime) -> float:
        """
        Close the open pause window, folding it into the accumulated total.

        Returns the seconds added (0.0 if the ticket was not paused).
        """
        if not ticket.sla_paused:
            return 0.0
        window = 0.0
        if ticket.sla_pause_started_at is not None:
            window = max(0.0, (now - ticket.sla_pause_started_at).total_seconds())
        ticket.sla_accumulated_pause_seconds = (ticket.sla_accumulated_pause_seconds or 0.0) + window
        ticket.sla_paused = False
        ticket.sla_pause_started_at = None
        return window

    @staticmethod
    def in_flight_pause_seconds(ticket: SLATracked, now: datetime) -> float:
        """Length of the pause window still open at `now`."""
        if not ticket.sla_paused or ticket.sla_pause_started_at is None:
            return 0.0
        return max(0.0, (now - ticket.sla_pause_started_at).total_seconds())

    @staticmethod
    def total_paused_seconds(ticket: SLATracked, now: datetime) -> float:
        return (ticket.sla_accumulated_pause_seconds or 0.0) + SLACalculator.in_flight_pause_seconds(ticket, now)

    @staticmethod
    def elapsed_service_seconds(ticket: SLATracked, now: datetime) -> float:
        """Wall-clock time since creation minus all pause time."""
        wall = (now - ticket.created_at).total_seconds()
        return wall - SLACalculator.total_paused_seconds(ticket, now)

    @staticmethod
    def is_breached(ticket: SLATracked, threshold_seconds: float, now: datetime) -> bool:
        """
        Breach predicate.

        The in-flight pause term is always subtracted, so the clock of a
        paused ticket is frozen and it cannot tip into breach while paused.
        """
        return SLACalculator.elapsed_service_seconds(ticket, now) > threshold_seconds

    @staticmethod
    def resolution_seconds(ticket: SLATracked) -> Optional[float]:
        """
        Service time taken to resolve, excluding accumulated pauses.

        Negative results are data-integrity anomalies: they are logged and
        clamped to zero, never raised.
        """
        if ticket.resolved_at is None:
            return None
        at = ticket.resolved_at
        seconds = (at - ticket.created_at).total_seconds() - SLACalculator.total_paused_seconds(ticket, at)
        if seconds < 0:
            logger.warning(
                "Negative resolution time clamped to zero",
                extra={
                    "ticket_id": ticket.id,
                    "raw_seconds": seconds,
                    "anomaly": "negative_resolution_time",
                }
            )
            return 0.0
        return seconds

    @staticmethod
    def calculate_state(ticket: SLATracked, threshold_seconds: float, now: datetime) -> SLAState:
        """Current SLA state of a ticket."""
        if ticket.resolved_at is not None:
            resolution = SLACalculator.resolution_seconds(ticket) or 0.0
            return SLAState.BREACHED if resolution > threshold_seconds else SLAState.MET
        if SLACalculator.is_breached(ticket, threshold_seconds, now):
            return SLAState.BREACHED
        if ticket.sla_paused:
            return SLAState.PAUSED
        return SLAState.ON_TRACK


class SLAConfig(BaseModel):
    """
    SLA configuration loaded from YAML.

    Breach threshold = category override for the priority if present,
    else the priority default. Values are hours.
    """
    thresholds_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_THRESHOLD_HOURS),
        description="Breach thresholds in hours by priority"
    )
    category_overrides: Dict[str, Dict[str, float]] = Field(
        default_factory=dict,
        description="Per-category thresholds in hours, keyed category -> priority"
    )

    @field_validator("thresholds_hours")
    @classmethod
    def validate_thresholds(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Fill missing priorities with defaults and reject unknown ones."""
        unknown = set(v) - set(VALID_PRIORITIES)
        if unknown:
            raise ValueError(f"Unknown priorities in thresholds: {sorted(unknown)}")
        for priority in VALID_PRIORITIES:
            v.setdefault(priority, DEFAULT_THRESHOLD_HOURS[priority])
            if v[priority] <= 0:
                raise ValueError(f"Threshold for {priority} must be positive")
        return v

    @field_validator("category_overrides")
    @classmethod
    def validate_overrides(cls, v: Dict[str, Dict[str, float]]) -> Dict[str, Dict[str, float]]:
        unknown = set(v) - set(VALID_CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown categories in overrides: {sorted(unknown)}")
        return v

    def threshold_seconds(self, priority: str, category: Optional[str] = None) -> float:
        """Breach threshold for a (priority, category) pair."""
        priority = getattr(priority, "value", priority)
        category = getattr(category, "value", category)
        hours = self.category_overrides.get(category or "", {}).get(priority)
        if hours is None:
            hours = self.thresholds_hours.get(priority, DEFAULT_THRESHOLD_HOURS[Priority.MEDIUM.value])
        return hours * 3600.0


@dataclass(frozen=True)
class SLAStatus:
    """Snapshot of a ticket's SLA clock at a point in time."""
    ticket_id: str
    threshold_seconds: float
    elapsed_service_seconds: float
    paused_seconds: float
    is_paused: bool
    is_breached: bool
    state: SLAState
    evaluated_at: datetime
    resolution_seconds: Optional[float] = None

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, self.threshold_seconds - self.elapsed_service_seconds)

    @property
    def projected_deadline(self) -> datetime:
        """Deadline if the clock keeps running from now without further pauses."""
        return self.evaluated_at + timedelta(seconds=self.remaining_seconds)

    @classmethod
    def evaluate(cls, ticket: SLATracked, config: SLAConfig, now: datetime) -> "SLAStatus":
        threshold = config.threshold_seconds(ticket.priority, ticket.category)
        state = SLACalculator.calculate_state(ticket, threshold, now)
        return cls(
            ticket_id=ticket.id,
            threshold_seconds=threshold,
            elapsed_service_seconds=SLACalculator.elapsed_service_seconds(ticket, ticket.resolved_at or now),
            paused_seconds=SLACalculator.total_paused_seconds(ticket, ticket.resolved_at or now),
            is_paused=ticket.sla_paused,
            is_breached=state == SLAState.BREACHED,
            state=state,
            evaluated_at=now,
            resolution_seconds=SLACalculator.resolution_seconds(ticket),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "ticket_id": self.ticket_id,
            "state": self.state.value,
            "is_breached": self.is_breached,
            "is_paused": self.is_paused,
            "threshold_seconds": self.threshold_seconds,
            "elapsed_service_seconds": self.elapsed_service_seconds,
            "paused_seconds": self.paused_seconds,
            "remaining_seconds": self.remaining_seconds,
            "projected_deadline": self.projected_deadline.isoformat(),
            "resolution_seconds": self.resolution_seconds,
        }
