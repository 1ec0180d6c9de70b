"""Resolver check-in/check-out."""

import asyncio

import pytest

from facilityops.core import AlreadyCheckedInException, NotCheckedInException, PermissionDeniedException


@pytest.mark.asyncio
async def test_check_in_then_out(services, actors, clock):
    resolver = actors["res-1"]

    record = await services.shifts.check_in(resolver, "propertyA")
    assert record.checked_in
    assert await services.shifts.is_checked_in("res-1", "propertyA")

    clock.advance(hours=8)
    closed = await services.shifts.check_out(resolver, "propertyA")
    assert closed.duration_seconds == 8 * 3600
    assert not await services.shifts.is_checked_in("res-1", "propertyA")


@pytest.mark.asyncio
async def test_double_check_in_is_rejected(services, actors):
    await services.shifts.check_in(actors["res-1"], "propertyA")

    with pytest.raises(AlreadyCheckedInException):
        await services.shifts.check_in(actors["res-1"], "propertyA")


@pytest.mark.asyncio
async def test_concurrent_check_ins_open_a_single_shift(services, actors, store):
    results = await asyncio.gather(
        services.shifts.check_in(actors["res-2"], "propertyA"),
        services.shifts.check_in(actors["res-2"], "propertyA"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, AlreadyCheckedInException) for r in results) == 1
    assert len(store.table("shift_records").where(lambda r: r.user_id == "res-2" and r.checked_in)) == 1


@pytest.mark.asyncio
async def test_check_out_without_shift_is_rejected(services, actors):
    with pytest.raises(NotCheckedInException):
        await services.shifts.check_out(actors["res-1"], "propertyA")


@pytest.mark.asyncio
async def test_only_resolvers_at_their_properties_check_in(services, actors):
    with pytest.raises(PermissionDeniedException):
        await services.shifts.check_in(actors["tenant-1"], "propertyA")
    with pytest.raises(PermissionDeniedException):
        await services.shifts.check_in(actors["res-1"], "propertyB")


@pytest.mark.asyncio
async def test_toggle_reports_state(services, actors):
    assert await services.shifts.toggle(actors["res-1"], "propertyA", "check_in") == (True, "Shift started successfully")
    assert await services.shifts.toggle(actors["res-1"], "propertyA", "check_out") == (False, "Shift ended successfully")
