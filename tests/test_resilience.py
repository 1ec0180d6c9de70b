"""Bounded waits and retries around upstream calls."""

import asyncio

import pytest

from facilityops.core import UpstreamUnavailableException, ValidationException
from facilityops.main import run_breach_scan
from facilityops.shared.infrastructure.resilience import bounded, retry_with_backoff


@pytest.mark.asyncio
async def test_bounded_returns_result():
    async def quick():
        return 42

    assert await bounded(quick(), "quick", timeout=1) == 42


@pytest.mark.asyncio
async def test_bounded_timeout_is_retryable():
    with pytest.raises(UpstreamUnavailableException) as exc_info:
        await bounded(asyncio.sleep(1), "tickets.get", timeout=0.01)

    assert exc_info.value.retryable is True
    assert exc_info.value.details == {"operation": "tickets.get"}


@pytest.mark.asyncio
async def test_retry_until_success():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise UpstreamUnavailableException("Store", "timed out")
        return "ok"

    assert await retry_with_backoff(flaky, "flaky", base_delay=0) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_retries():
    calls = []

    async def down():
        calls.append(1)
        raise UpstreamUnavailableException("Store", "timed out")

    with pytest.raises(UpstreamUnavailableException):
        await retry_with_backoff(down, "down", max_retries=2, base_delay=0)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately():
    calls = []

    async def invalid():
        calls.append(1)
        raise ValidationException("bad input")

    with pytest.raises(ValidationException):
        await retry_with_backoff(invalid, "invalid", base_delay=0)
    assert calls == [1]


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_scheduled_breach_scan_reports_through_context(context, raise_ticket, clock):
    ticket = await raise_ticket(priority="critical")
    clock.advance(hours=3)

    await run_breach_scan(context)

    assert context.reported_breaches == {ticket.id}
