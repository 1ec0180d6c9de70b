"""
Notification Application Services
=================================

NotificationFanout turns ticket lifecycle events and SLA breaches into
persisted notifications, then pushes them over the real-time channel.

Delivery order is persist first, publish second. A dropped or timed-out push
is only logged: the row is already stored, so the recipient's next refetch
shows it.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from facilityops.config import NotificationType, TicketEventType, settings
from facilityops.core import ApplicationException, ResourceNotFoundException
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Role
from facilityops.infrastructure.realtime import RealtimeBroker, notifications_topic, tickets_topic
from facilityops.notifications.application.repositories import INotificationRepository
from facilityops.notifications.domain import Notification
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.sla.domain import SLABreach
from facilityops.tickets.domain import TicketEvent

logger = get_logger(__name__)

WATCHER_ROLES = (Role.PROPERTY_ADMIN, Role.ORG_ADMIN)


class NotificationFanout:
    """Computes recipients, deduplicates, persists and publishes."""

    def __init__(
        self,
        notifications: INotificationRepository,
        directory: IDirectoryRepository,
        broker: Optional[RealtimeBroker] = None,
        commit=None,
        clock: Clock = utcnow,
        debounce_seconds: Optional[float] = None,
    ):
        self._notifications = notifications
        self._directory = directory
        self._broker = broker
        self._commit = commit
        self._clock = clock
        self._debounce = timedelta(
            seconds=settings.notification_debounce_seconds if debounce_seconds is None else debounce_seconds
        )

    # ========== Ticket lifecycle ==========

    async def publish(self, events: Sequence[TicketEvent]) -> None:
        """Fan out committed lifecycle events."""
        created: List[Notification] = []
        for event in events:
            for recipient_id, kind, title, message in await self._recipients_for(event):
                notification = await self._persist(recipient_id, kind, title, message, event.ticket.id)
                if notification is not None:
                    created.append(notification)

        if self._commit is not None and created:
            await self._commit()

        for notification in created:
            await self._push(
                notifications_topic(notification.recipient_id),
                "notification.created",
                notification.to_dict(),
                notification.created_at,
            )

        if events:
            latest = events[-1].ticket
            await self._push(
                tickets_topic(latest.property_id),
                "ticket.updated",
                latest.to_dict(),
                latest.updated_at,
            )

    async def _recipients_for(self, event: TicketEvent) -> List[Tuple[str, NotificationType, str, str]]:
        ticket = event.ticket
        code = ticket.display_code
        recipients: List[Tuple[str, NotificationType, str, str]] = []

        if event.type == TicketEventType.CREATED:
            for admin_id in await self._watchers(ticket.property_id):
                if admin_id == ticket.creator_id:
                    continue
                recipients.append((
                    admin_id, NotificationType.TICKET_CREATED,
                    "New ticket raised", f"{code}: {ticket.title}",
                ))

        elif event.type == TicketEventType.ASSIGNED:
            if ticket.creator_id != ticket.assignee_id:
                recipients.append((
                    ticket.creator_id, NotificationType.TICKET_ASSIGNED,
                    "Your ticket was assigned", f"{code} is now with a resolver",
                ))
            if ticket.assignee_id and not event.is_self_claim:
                recipients.append((
                    ticket.assignee_id, NotificationType.TICKET_ASSIGNED,
                    "Ticket assigned to you", f"{code}: {ticket.title}",
                ))

        elif event.type == TicketEventType.WAITLISTED:
            recipients.append((
                ticket.creator_id, NotificationType.TICKET_WAITLISTED,
                "Your ticket is waiting for a resolver", f"{code} is back in the queue",
            ))
            previous = event.previous_assignee_id
            if previous and previous != ticket.creator_id and previous != event.actor.user_id:
                recipients.append((
                    previous, NotificationType.TICKET_WAITLISTED,
                    "Ticket unassigned from you", f"{code}: {ticket.title}",
                ))

        elif event.type == TicketEventType.COMPLETED:
            recipients.append((
                ticket.creator_id, NotificationType.TICKET_COMPLETED,
                "Your ticket was completed", f"{code} is {ticket.status.value}",
            ))

        return recipients

    # ========== SLA breaches ==========

    async def publish_breaches(self, breaches: Iterable[SLABreach]) -> int:
        """Notify property watchers of derived breach events. Returns notifications written."""
        created: List[Notification] = []
        for breach in breaches:
            overdue_minutes = int(breach.overdue_seconds // 60)
            for admin_id in await self._watchers(breach.property_id):
                notification = await self._persist(
                    admin_id,
                    NotificationType.SLA_BREACHED,
                    "SLA breached",
                    f"{breach.display_code} ({breach.priority}) is {overdue_minutes} min over its SLA",
                    breach.ticket_id,
                )
                if notification is not None:
                    created.append(notification)

        if self._commit is not None and created:
            await self._commit()

        for notification in created:
            await self._push(
                notifications_topic(notification.recipient_id),
                "notification.created",
                notification.to_dict(),
                notification.created_at,
            )
        return len(created)

    # ========== Helpers ==========

    async def _watchers(self, property_id: str) -> List[str]:
        staff = await bounded(
            self._directory.list_staff(property_id, roles=WATCHER_ROLES), "directory.list_staff"
        )
        return [member.user_id for member in staff]

    async def _persist(
        self,
        recipient_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str],
    ) -> Optional[Notification]:
        now = self._clock()
        notification = Notification(
            recipient_id=recipient_id,
            type=kind,
            title=title,
            message=message,
            ticket_id=ticket_id,
            created_at=now,
        )
        inserted = await bounded(
            self._notifications.insert_unless_duplicate(notification, now - self._debounce),
            "notifications.insert",
        )
        if not inserted:
            logger.debug(
                "Duplicate notification suppressed",
                extra={"recipient_id": recipient_id, "type": kind.value, "ticket_id": ticket_id}
            )
            return None
        return notification

    async def _push(self, topic: str, kind: str, payload: dict, occurred_at: datetime) -> None:
        if self._broker is None:
            return
        try:
            await bounded(
                self._broker.publish(topic, kind, payload, occurred_at),
                "realtime.publish",
                service_name="RealtimeChannel",
            )
        except ApplicationException as exc:
            logger.warning(
                "Real-time publish failed, subscribers will catch up on refetch",
                extra={"topic": topic, "kind": kind, "error": exc.message}
            )


class NotificationService:
    """Recipient-facing reads and read-state changes."""

    def __init__(self, notifications: INotificationRepository, clock: Clock = utcnow):
        self._notifications = notifications
        self._clock = clock

    async def list_notifications(
        self,
        recipient_id: str,
        limit: int = 50,
        unread_only: bool = False
    ) -> Tuple[List[Notification], int]:
        """Recency-ordered notifications and the unread count."""
        items = await bounded(
            self._notifications.list_for_recipient(recipient_id, limit, unread_only), "notifications.list"
        )
        unread = await bounded(self._notifications.count_unread(recipient_id), "notifications.count_unread")
        return items, unread

    async def mark_read(self, recipient_id: str, notification_id: str) -> Notification:
        """Idempotent: marking an already-read notification is a no-op."""
        notification = await bounded(
            self._notifications.mark_read(recipient_id, notification_id, self._clock()),
            "notifications.mark_read",
        )
        if notification is None:
            raise ResourceNotFoundException("Notification", notification_id)
        return notification

    async def mark_all_read(self, recipient_id: str) -> int:
        updated = await bounded(
            self._notifications.mark_all_read(recipient_id, self._clock()), "notifications.mark_all_read"
        )
        logger.info("Notifications marked read", extra={"recipient_id": recipient_id, "updated": updated})
        return updated

    async def unread_count(self, recipient_id: str) -> int:
        return await bounded(self._notifications.count_unread(recipient_id), "notifications.count_unread")
