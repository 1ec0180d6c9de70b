"""
Shift Application Services
==========================
"""

from typing import Awaitable, Callable, Optional, Protocol, Tuple

from facilityops.core import AlreadyCheckedInException, NotCheckedInException, PermissionDeniedException
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Actor, Capability
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.shifts.application.repositories import IShiftRepository
from facilityops.shifts.domain import ShiftRecord

logger = get_logger(__name__)


class IWaitlistReconciler(Protocol):
    async def reconcile(self, property_id: str) -> int:
        ...


class ShiftService:
    """
    Check-in/check-out for resolvers.

    A successful check-in is committed first, then waitlist reconciliation
    runs for that property. A failed reconciliation is logged; the check-in
    stands.
    """

    def __init__(
        self,
        shifts: IShiftRepository,
        directory: IDirectoryRepository,
        reconciler: Optional[IWaitlistReconciler] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
        clock: Clock = utcnow,
    ):
        self._shifts = shifts
        self._directory = directory
        self._reconciler = reconciler
        self._commit = commit
        self._clock = clock

    async def check_in(self, actor: Actor, property_id: str) -> ShiftRecord:
        await self._ensure_member(actor, property_id)

        record = ShiftRecord(user_id=actor.user_id, property_id=property_id, checked_in_at=self._clock())
        opened = await bounded(self._shifts.open_shift(record), "shifts.open")
        if not opened:
            raise AlreadyCheckedInException(actor.user_id, property_id)
        if self._commit is not None:
            await self._commit()

        logger.info("Shift started", extra={"user_id": actor.user_id, "property_id": property_id})

        if self._reconciler is not None:
            try:
                dispatched = await self._reconciler.reconcile(property_id)
            except Exception:
                logger.exception("Waitlist reconciliation failed", extra={"property_id": property_id})
            else:
                if dispatched:
                    logger.info(
                        "Waitlisted tickets dispatched on check-in",
                        extra={"property_id": property_id, "dispatched": dispatched}
                    )
        return record

    async def check_out(self, actor: Actor, property_id: str) -> ShiftRecord:
        await self._ensure_member(actor, property_id)

        record = await bounded(self._shifts.get_open(actor.user_id, property_id), "shifts.get_open")
        if record is None:
            raise NotCheckedInException(actor.user_id, property_id)

        now = max(self._clock(), record.checked_in_at)
        closed = await bounded(self._shifts.close_shift(record.id, now), "shifts.close")
        if not closed:
            # Closed concurrently by another request of the same user
            raise NotCheckedInException(actor.user_id, property_id)
        if self._commit is not None:
            await self._commit()

        record.checked_out_at = now
        logger.info(
            "Shift ended",
            extra={"user_id": actor.user_id, "property_id": property_id, "duration_seconds": record.duration_seconds}
        )
        return record

    async def toggle(self, actor: Actor, property_id: str, action: str) -> Tuple[bool, str]:
        """Apply a check_in/check_out action; returns (is_checked_in, message)."""
        if action == "check_in":
            await self.check_in(actor, property_id)
            return True, "Shift started successfully"
        await self.check_out(actor, property_id)
        return False, "Shift ended successfully"

    async def is_checked_in(self, user_id: str, property_id: str) -> bool:
        return await self.current_shift(user_id, property_id) is not None

    async def current_shift(self, user_id: str, property_id: str) -> Optional[ShiftRecord]:
        return await bounded(self._shifts.get_open(user_id, property_id), "shifts.get_open")

    async def _ensure_member(self, actor: Actor, property_id: str) -> None:
        if not actor.can(Capability.CHECK_IN):
            raise PermissionDeniedException("check in", actor.role.value)
        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        if staff is None or not staff.serves(property_id):
            raise PermissionDeniedException("check in at this property", actor.role.value)
