"""
Notification dispatcher.

Turns booking workflow events into notifications addressed to single users:
the trainer who owns the booking, and the admin or security user responsible
for the booking's academy location. A repeated event for the same
``(type, user_id, related_entity_id)`` rewrites the existing notification
instead of adding another one.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from fleet_booking.exceptions import NotFound
from fleet_booking.locations import same_location
from fleet_booking.models.booking import utcnow
from fleet_booking.models.notification import Notification, NotificationType
from fleet_booking.models.user import UserRole
from fleet_booking.store import ResourceStore

logger = logging.getLogger(__name__)


class NotificationSink:
    """Receives every notification the dispatcher writes, once it is committed."""

    def push(self, notification: Notification):
        raise NotImplementedError


_sinks: List[NotificationSink] = []


def register_sink(sink: NotificationSink):
    _sinks.append(sink)


def unregister_sink(sink: NotificationSink):
    if sink in _sinks:
        _sinks.remove(sink)


@dataclass
class EventContext:
    booking_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    vehicle_name: str = "Unknown Vehicle"
    location: Optional[str] = None
    trainer_id: Optional[str] = None
    trainer_name: Optional[str] = None
    security_name: Optional[str] = None
    condition: Optional[str] = None
    reason: Optional[str] = None
    parts: List[str] = field(default_factory=list)


class NotificationDispatcher:
    def __init__(self, db: Session, store: Optional[ResourceStore] = None, sinks: Optional[List[NotificationSink]] = None):
        self.store = store or ResourceStore(db)
        self.sinks = _sinks if sinks is None else sinks
        self._handlers: Dict[NotificationType, Callable[[EventContext], List[Notification]]] = {
            NotificationType.BOOKING_CREATED: self._booking_created,
            NotificationType.BOOKING_APPROVED: self._booking_approved,
            NotificationType.BOOKING_REJECTED: self._booking_rejected,
            NotificationType.BOOKING_CANCELLED: self._booking_cancelled,
            NotificationType.KEY_ISSUED: self._key_issued,
            NotificationType.VEHICLE_RETURNED: self._vehicle_returned,
            NotificationType.DAMAGE_REPORTED: self._damage_reported,
            NotificationType.PARTS_REQUESTED: self._parts_requested,
            NotificationType.MAINTENANCE_REQUIRED: self._maintenance_required,
        }

    # Recipient resolution

    def resolve_recipient(self, role: UserRole, location: Optional[str]) -> Optional[str]:
        """Return the id of the first user holding ``role`` at ``location``, if any."""
        if not location:
            return None
        for user in self.store.list_users(role=role.value):
            if same_location(user.location, location):
                return user.id
        logger.debug(f"No {role.value} found for location {location}")
        return None

    # Writing

    def notify(
        self,
        type_: NotificationType,
        user_id: Optional[str],
        title: str,
        message: str,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        read: Optional[bool] = None,
    ) -> Optional[Notification]:
        if not user_id:
            return None

        existing = self.store.find_notification(type_.value, user_id, related_entity_id)
        if existing is not None:
            existing.title = title
            existing.message = message
            existing.related_entity_type = related_entity_type
            existing.action_url = action_url
            existing.details = metadata
            existing.read = bool(read)
            self.store.flush()
            notification = existing
            logger.debug(f"Updated notification {notification.id} ({type_.value}) for user {user_id}")
        else:
            notification = self.store.add_notification(
                type=type_.value,
                title=title,
                message=message,
                user_id=user_id,
                related_entity_type=related_entity_type,
                related_entity_id=related_entity_id,
                action_url=action_url,
                details=metadata,
                read=bool(read),
                timestamp=utcnow(),
            )
            logger.debug(f"Created notification {notification.id} ({type_.value}) for user {user_id}")

        # Subscribers only hear about notifications that were committed
        self.store.after_commit(lambda: self._push(notification))
        return notification

    def _push(self, notification: Notification):
        for sink in self.sinks:
            sink.push(notification)

    def emit(self, event, context: EventContext) -> List[Notification]:
        handler = self._handlers[NotificationType(event)]
        notifications = [n for n in handler(context) if n is not None]
        logger.debug(f"Event {NotificationType(event).value} produced {len(notifications)} notifications")
        return notifications

    def acknowledge_booking(self, context: EventContext) -> Optional[Notification]:
        """Direct confirmation to the trainer that their request was received."""
        return self.notify(
            NotificationType.BOOKING_CREATED,
            context.trainer_id,
            "Booking Request Submitted",
            f"Your request for {context.vehicle_name} at {context.location} is awaiting approval",
            related_entity_type="booking",
            related_entity_id=context.booking_id,
            action_url="/trainer/bookings",
        )

    # Event handlers

    def _booking_created(self, ctx):
        return [
            self.notify(
                NotificationType.BOOKING_CREATED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "New Booking Request",
                f"{ctx.trainer_name} has requested to book {ctx.vehicle_name} at {ctx.location}",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/admin/bookings",
            )
        ]

    def _booking_approved(self, ctx):
        return [
            self.notify(
                NotificationType.BOOKING_APPROVED,
                ctx.trainer_id,
                "Booking Approved",
                f"Your booking for {ctx.vehicle_name} has been approved. Please contact security to collect the key.",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/trainer/bookings",
            ),
            self.notify(
                NotificationType.BOOKING_APPROVED,
                self.resolve_recipient(UserRole.SECURITY, ctx.location),
                "New Key Issue Required",
                f"Approved booking for {ctx.vehicle_name} is ready for key issue",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/security/keys",
            ),
        ]

    def _booking_rejected(self, ctx):
        reason = f" Reason: {ctx.reason}" if ctx.reason else ""
        return [
            self.notify(
                NotificationType.BOOKING_REJECTED,
                ctx.trainer_id,
                "Booking Rejected",
                f"Your booking for {ctx.vehicle_name} has been rejected.{reason}",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/trainer/bookings",
                metadata={"reason": ctx.reason} if ctx.reason else None,
            )
        ]

    def _booking_cancelled(self, ctx):
        return [
            self.notify(
                NotificationType.BOOKING_CANCELLED,
                ctx.trainer_id,
                "Booking Cancelled",
                f"Your booking for {ctx.vehicle_name} has been cancelled",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/trainer/bookings",
            ),
            self.notify(
                NotificationType.BOOKING_CANCELLED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "Booking Cancelled",
                f"Booking by {ctx.trainer_name} for {ctx.vehicle_name} was cancelled",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/admin/bookings",
            ),
        ]

    def _key_issued(self, ctx):
        issuer = f" by {ctx.security_name}" if ctx.security_name else ""
        return [
            self.notify(
                NotificationType.KEY_ISSUED,
                ctx.trainer_id,
                "Key Issued",
                f"Key for {ctx.vehicle_name} has been issued{issuer}. Your booking is now active.",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/trainer/bookings",
            )
        ]

    def _vehicle_returned(self, ctx):
        verifier = f" and verified by {ctx.security_name}" if ctx.security_name else ""
        condition = ctx.condition or "not recorded"
        return [
            self.notify(
                NotificationType.VEHICLE_RETURNED,
                ctx.trainer_id,
                "Vehicle Returned",
                f"Vehicle {ctx.vehicle_name} has been returned{verifier}. Condition: {condition}",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/trainer/bookings",
                metadata={"condition": ctx.condition},
            ),
            self.notify(
                NotificationType.VEHICLE_RETURNED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "Vehicle Returned",
                f"{ctx.vehicle_name} has been returned from booking. Condition: {condition}",
                related_entity_type="booking",
                related_entity_id=ctx.booking_id,
                action_url="/admin/bookings",
                metadata={"condition": ctx.condition},
            ),
        ]

    def _damage_reported(self, ctx):
        return [
            self.notify(
                NotificationType.DAMAGE_REPORTED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "Vehicle Damage Reported",
                f"Damage has been reported for {ctx.vehicle_name}. Please review and take appropriate action.",
                related_entity_type="damage_report",
                related_entity_id=ctx.booking_id,
                action_url="/admin/bookings",
                metadata={"vehicle_id": ctx.vehicle_id, "booking_id": ctx.booking_id, "notes": ctx.reason},
            )
        ]

    def _parts_requested(self, ctx):
        return [
            self.notify(
                NotificationType.PARTS_REQUESTED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "Parts Request",
                f"Parts have been requested for {ctx.vehicle_name}. Please review and fulfill the request.",
                related_entity_type="parts_request",
                related_entity_id=ctx.booking_id,
                action_url="/admin/bookings",
                metadata={"vehicle_id": ctx.vehicle_id, "booking_id": ctx.booking_id, "parts": ctx.parts},
            )
        ]

    def _maintenance_required(self, ctx):
        return [
            self.notify(
                NotificationType.MAINTENANCE_REQUIRED,
                self.resolve_recipient(UserRole.ADMIN, ctx.location),
                "Maintenance Required",
                f"{ctx.vehicle_name} requires maintenance: {ctx.reason}",
                related_entity_type="vehicle",
                related_entity_id=ctx.vehicle_id,
                action_url="/admin/vehicles",
                metadata={"location": ctx.location, "reason": ctx.reason},
            )
        ]

    # Inbox

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        return self.store.list_notifications(user_id=user_id, unread_only=unread_only)

    def unread_count(self, user_id: str) -> int:
        return len(self.store.list_notifications(user_id=user_id, unread_only=True))

    def _owned(self, notification_id, user_id):
        notification = self.store.get_notification(notification_id)
        if notification.user_id != user_id:
            raise NotFound("Notification", notification_id)
        return notification

    def mark_as_read(self, notification_id: str, user_id: str) -> Notification:
        notification = self._owned(notification_id, user_id)
        notification.read = True
        self.store.commit()
        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        unread = self.store.list_notifications(user_id=user_id, unread_only=True)
        for notification in unread:
            notification.read = True
        self.store.commit()
        logger.debug(f"Marked {len(unread)} notifications read for user {user_id}")
        return len(unread)

    def delete(self, notification_id: str, user_id: str):
        self._owned(notification_id, user_id)
        self.store.delete_notification(notification_id)
        self.store.commit()
