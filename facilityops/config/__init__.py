"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="facilityops", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Store ==========
    store_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Durable store implementation (sql) or process-local store (memory)"
    )
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/facilityops",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    store_timeout_seconds: float = Field(
        default=5.0,
        description="Bounded wait for any store or channel call",
        gt=0,
        le=60
    )

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA configuration YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between SLA breach scans (0 disables the scheduler)",
        ge=0
    )
    resolved_grace_period_hours: float = Field(
        default=72.0,
        description="Hours a resolved ticket waits before the system closes it",
        gt=0
    )

    # ========== Dispatch ==========
    manual_assign_categories: List[str] = Field(
        default=["security"],
        description="Categories left open for a dispatcher instead of auto-assigned"
    )
    waitlist_reconcile_batch_size: int = Field(
        default=10,
        description="Oldest waitlisted tickets re-dispatched per check-in",
        ge=1
    )

    # ========== Notifications ==========
    notification_debounce_seconds: int = Field(
        default=60,
        description="Window in which duplicate unread notifications are suppressed",
        ge=0
    )
    realtime_queue_size: int = Field(
        default=256,
        description="Per-subscriber buffer of the real-time channel",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA breach escalation"
    )
    slack_channel: str = Field(
        default="#facility-sla",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== Client cache / dashboards ==========
    cache_ttl_seconds: float = Field(
        default=120.0,
        description="Freshness window of dashboard cache entries",
        gt=0
    )
    dashboard_load_timeout_seconds: float = Field(
        default=10.0,
        description="Bound on a dashboard's initial load before offering a retry",
        gt=0
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketCategory(str, Enum):
    """Facility issue categories raised by tenants."""
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    HVAC = "hvac"
    CLEANING = "cleaning"
    SECURITY = "security"
    OTHER = "other"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    WAITLIST = "waitlist"
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    BLOCKED = "blocked"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketEventType(str, Enum):
    """Lifecycle events emitted by the state machine and the SLA scanner."""
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    WAITLISTED = "WAITLISTED"
    COMPLETED = "COMPLETED"
    STATUS_CHANGED = "STATUS_CHANGED"
    SLA_BREACHED = "SLA_BREACHED"


class NotificationType(str, Enum):
    """Persisted notification kinds."""
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_WAITLISTED = "TICKET_WAITLISTED"
    TICKET_COMPLETED = "TICKET_COMPLETED"
    SLA_BREACHED = "SLA_BREACHED"


class SLAState(str, Enum):
    """SLA status states."""
    ON_TRACK = "on_track"
    PAUSED = "paused"
    BREACHED = "breached"
    MET = "met"


# ========== Lists for validation ==========

VALID_PRIORITIES = [p.value for p in Priority]
VALID_CATEGORIES = [c.value for c in TicketCategory]
VALID_STATUSES = [s.value for s in TicketStatus]

ACTIVE_STATUSES = (
    TicketStatus.ASSIGNED,
    TicketStatus.IN_PROGRESS,
    TicketStatus.PAUSED,
    TicketStatus.BLOCKED,
)
UNASSIGNED_STATUSES = (TicketStatus.OPEN, TicketStatus.WAITLIST)
COMPLETED_STATUSES = (TicketStatus.RESOLVED, TicketStatus.CLOSED)
