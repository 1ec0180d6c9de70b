"""SLA timer arithmetic, breach scanning, grace-period close and config reload."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from facilityops.config import NotificationType, SLAState, TicketStatus
from facilityops.core import ConfigurationException, PermissionDeniedException
from facilityops.sla.application import GracePeriodCloser
from facilityops.sla.domain import SLACalculator, SLAConfig, SLAStatus
from facilityops.sla.infrastructure import SLAConfigManager
from facilityops.tickets.domain import Ticket

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
HOUR = 3600.0


def in_progress_ticket(priority="high", category="electrical") -> Ticket:
    return Ticket(
        id="t-1",
        display_code="TKT-20240115-ABC123",
        title="No power",
        description="Sockets dead in unit 4",
        category=category,
        priority=priority,
        status=TicketStatus.IN_PROGRESS,
        property_id="propertyA",
        organization_id="org",
        creator_id="tenant-1",
        raised_by_role="tenant",
        created_at=T0,
        updated_at=T0,
        assignee_id="res-1",
    )


# ========== Timer arithmetic ==========

def test_pause_window_is_excluded_from_elapsed_time():
    ticket = in_progress_ticket(priority="high")
    threshold = SLAConfig().threshold_seconds("high")
    assert threshold == 4 * HOUR

    SLACalculator.pause(ticket, T0 + timedelta(hours=1))
    SLACalculator.resume(ticket, T0 + timedelta(hours=2))

    now = T0 + timedelta(hours=4, minutes=30)
    assert SLACalculator.elapsed_service_seconds(ticket, now) == 3.5 * HOUR
    assert not SLACalculator.is_breached(ticket, threshold, now)
    assert SLACalculator.is_breached(ticket, threshold, T0 + timedelta(hours=5, minutes=1))


def test_open_pause_freezes_the_clock():
    ticket = in_progress_ticket(priority="critical")
    SLACalculator.pause(ticket, T0 + timedelta(hours=1))

    later = T0 + timedelta(hours=10)
    assert SLACalculator.elapsed_service_seconds(ticket, later) == HOUR
    assert not SLACalculator.is_breached(ticket, 2 * HOUR, later)
    assert SLACalculator.calculate_state(ticket, 2 * HOUR, later) == SLAState.PAUSED


def test_pause_and_resume_are_idempotent():
    ticket = in_progress_ticket()

    assert SLACalculator.pause(ticket, T0 + timedelta(hours=1))
    assert not SLACalculator.pause(ticket, T0 + timedelta(hours=2))
    assert SLACalculator.resume(ticket, T0 + timedelta(hours=3)) == 2 * HOUR
    assert SLACalculator.resume(ticket, T0 + timedelta(hours=4)) == 0.0
    assert ticket.sla_accumulated_pause_seconds == 2 * HOUR


def test_negative_resolution_time_is_clamped():
    ticket = in_progress_ticket()
    ticket.status = TicketStatus.RESOLVED
    ticket.resolved_at = T0 + timedelta(hours=1)
    ticket.sla_accumulated_pause_seconds = 2 * HOUR

    assert SLACalculator.resolution_seconds(ticket) == 0.0


def test_resolved_ticket_reports_met_or_breached():
    ticket = in_progress_ticket(priority="high")
    ticket.status = TicketStatus.RESOLVED
    ticket.resolved_at = T0 + timedelta(hours=3)

    status = SLAStatus.evaluate(ticket, SLAConfig(), T0 + timedelta(days=2))
    assert status.state == SLAState.MET
    assert status.resolution_seconds == 3 * HOUR

    ticket.resolved_at = T0 + timedelta(hours=5)
    assert SLAStatus.evaluate(ticket, SLAConfig(), T0 + timedelta(days=2)).state == SLAState.BREACHED


def test_status_snapshot_reports_remaining_time():
    ticket = in_progress_ticket(priority="medium")
    status = SLAStatus.evaluate(ticket, SLAConfig(), T0 + timedelta(hours=6))

    assert status.remaining_seconds == 18 * HOUR
    assert status.projected_deadline == T0 + timedelta(hours=24)
    assert status.to_dict()["state"] == "on_track"


# ========== Configuration ==========

def test_category_override_takes_precedence():
    config = SLAConfig(category_overrides={"security": {"critical": 1}})

    assert config.threshold_seconds("critical", "security") == HOUR
    assert config.threshold_seconds("critical", "plumbing") == 2 * HOUR
    assert config.threshold_seconds("low", "security") == 72 * HOUR


def test_config_rejects_unknown_or_non_positive_values():
    with pytest.raises(ValidationError):
        SLAConfig(thresholds_hours={"urgent": 1})
    with pytest.raises(ValidationError):
        SLAConfig(thresholds_hours={"high": 0})
    with pytest.raises(ValidationError):
        SLAConfig(category_overrides={"gardening": {"low": 1}})


def test_missing_config_file_uses_defaults(tmp_path):
    manager = SLAConfigManager()
    config = manager.load(tmp_path / "absent.yaml")

    assert config.thresholds_hours["high"] == 4.0
    assert manager.config is config


def test_invalid_config_file_fails_initial_load(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("thresholds_hours:\n  urgent: 1\n")

    with pytest.raises(ConfigurationException):
        SLAConfigManager().load(path)


def test_reload_keeps_previous_config_on_invalid_yaml(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("thresholds_hours:\n  high: 6\n")
    manager = SLAConfigManager()
    manager.load(path)
    assert manager.config.thresholds_hours["high"] == 6

    path.write_text("thresholds_hours: [unclosed\n")
    assert manager.reload() is False
    assert manager.config.thresholds_hours["high"] == 6

    path.write_text("thresholds_hours:\n  high: 8\n")
    assert manager.reload() is True
    assert manager.config.thresholds_hours["high"] == 8


def test_static_config_is_not_watched():
    manager = SLAConfigManager(SLAConfig())
    manager.start_watching()
    assert not manager.is_watching
    manager.stop_watching()


# ========== Breach scan ==========

@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_breach_is_reported_once(services, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical", priority="high")
    scanner = services.breach_scanner()

    clock.advance(hours=3)
    assert await scanner.scan() == []

    clock.advance(hours=1, minutes=1)
    breaches = await scanner.scan()
    assert [b.ticket_id for b in breaches] == [ticket.id]
    assert breaches[0].overdue_seconds == 60.0

    clock.advance(minutes=10)
    assert await services.breach_scanner().scan() == []

    for watcher in ("admin-1", "org-1"):
        items, _ = await services.notifications.list_notifications(watcher)
        assert [n.type for n in items].count(NotificationType.SLA_BREACHED) == 1


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_paused_ticket_does_not_breach(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical", priority="critical")
    await services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.IN_PROGRESS)
    clock.advance(hours=1)
    await services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.PAUSED, reason="tenant away")

    clock.advance(hours=12)
    assert await services.breach_scanner().detect() == []


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_blocked_ticket_keeps_breaching(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical", priority="critical")
    clock.advance(minutes=30)
    await services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.BLOCKED, reason="no access")

    clock.advance(hours=2)
    assert [b.ticket_id for b in await services.breach_scanner().detect()] == [ticket.id]


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_sla_dashboard_orders_breached_first(services, actors, raise_ticket, clock):
    slow = await raise_ticket(category="electrical", priority="low", title="Dim bulb")
    urgent = await raise_ticket(category="electrical", priority="critical", title="Sparking socket")
    clock.advance(hours=3)

    rows, summary = await services.sla.dashboard(actors["admin-1"])
    assert [t.id for t, _ in rows] == [urgent.id, slow.id]
    assert summary["breached_count"] == 1
    assert summary["breach_rate"] == 50.0

    rows, _ = await services.sla.dashboard(actors["admin-1"], sla_state="on_track")
    assert [t.id for t, _ in rows] == [slow.id]

    with pytest.raises(PermissionDeniedException):
        await services.sla.dashboard(actors["tenant-1"])
    with pytest.raises(PermissionDeniedException):
        await services.sla.dashboard(actors["admin-1"], property_id="propertyB")


# ========== Grace-period close ==========

@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_grace_closer_closes_only_expired_resolved_tickets(services, actors, raise_ticket, clock):
    resolver = actors["res-1"]
    old = await raise_ticket(category="electrical", title="Old fault")
    await services.tickets.transition(resolver, old.id, TicketStatus.IN_PROGRESS)
    await services.tickets.transition(resolver, old.id, TicketStatus.RESOLVED)

    clock.advance(hours=20)
    recent = await raise_ticket(category="electrical", title="Recent fault")
    await services.tickets.transition(resolver, recent.id, TicketStatus.IN_PROGRESS)
    await services.tickets.transition(resolver, recent.id, TicketStatus.RESOLVED)

    clock.advance(hours=5)
    closer = GracePeriodCloser(services.repos.tickets, services.tickets, clock, grace_hours=24)
    assert await closer.close_expired() == 1

    assert (await services.tickets.get_ticket(actors["admin-1"], old.id)).status == TicketStatus.CLOSED
    assert (await services.tickets.get_ticket(actors["admin-1"], recent.id)).status == TicketStatus.RESOLVED
