"""
Booking lifecycle.

    pending  -> approved | rejected
    approved -> active | cancelled
    active   -> completed

``rejected``, ``cancelled`` and ``completed`` are terminal. Every transition
re-derives the vehicle status and notifies the affected users inside the same
transaction as the status change.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from fleet_booking.config import MIN_BOOKING_DURATION
from fleet_booking.exceptions import (
    DurationTooShort,
    InvalidRange,
    InvalidTransition,
    PastStartDate,
    SchedulingConflict,
    VehicleUnavailable,
)
from fleet_booking.locations import normalize_location, same_location
from fleet_booking.models.booking import Booking, BookingStatus, Urgency, utcnow
from fleet_booking.models.key_issue import KeyIssue, KeyIssueStatus, ReturnCondition
from fleet_booking.models.notification import NotificationType
from fleet_booking.models.vehicle import Vehicle, VehicleStatus
from fleet_booking.services.conflicts import ConflictResolver
from fleet_booking.services.notifications import EventContext, NotificationDispatcher
from fleet_booking.services.vehicle_status import VehicleStatusSynchronizer
from fleet_booking.store import ResourceStore
from fleet_booking.utils.validation_helpers import to_utc_naive, truncate_to_minute

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.APPROVED, BookingStatus.REJECTED}),
    BookingStatus.APPROVED: frozenset({BookingStatus.ACTIVE, BookingStatus.CANCELLED}),
    BookingStatus.ACTIVE: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# Transitions that put the booking's window back in force
REVALIDATED_STATUSES = frozenset({BookingStatus.APPROVED, BookingStatus.ACTIVE})


@dataclass
class BookingRequest:
    vehicle_id: str
    trainer_id: str
    trainer_name: str
    start_date: datetime
    end_date: datetime
    purpose: str
    requested_location: Optional[str] = None
    urgency: str = Urgency.NORMAL.value
    notes: Optional[str] = None


@dataclass
class TransitionMeta:
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    condition: Optional[str] = None
    damage_notes: Optional[str] = None
    maintenance_reason: Optional[str] = None
    parts: List[str] = field(default_factory=list)


def can_transition(current, new) -> bool:
    return BookingStatus(new) in ALLOWED_TRANSITIONS[BookingStatus(current)]


class BookingLifecycleManager:
    def __init__(self, db: Session, now: Callable[[], datetime] = utcnow):
        self.store = ResourceStore(db)
        self.now = now
        self.conflicts = ConflictResolver(db, store=self.store)
        self.notifications = NotificationDispatcher(db, store=self.store)
        self.vehicles = VehicleStatusSynchronizer(db, store=self.store, notifications=self.notifications, now=now)

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        return self.store.get_booking(booking_id)

    def list_bookings(self, trainer_id=None, vehicle_id=None, status=None, skip=0, limit=100) -> List[Booking]:
        statuses = [status] if status else None
        return self.store.list_bookings(
            vehicle_id=vehicle_id,
            trainer_id=trainer_id,
            statuses=statuses,
            skip=skip,
            limit=limit,
        )

    # Creation

    def validate_window(self, start: datetime, end: datetime):
        if end <= start:
            raise InvalidRange("End date must be after start date")
        if end - start < MIN_BOOKING_DURATION:
            raise DurationTooShort("Booking must last at least one hour")
        if start < truncate_to_minute(self.now()):
            raise PastStartDate("Start date cannot be in the past")

    def create_booking(self, request: BookingRequest) -> Booking:
        start, end = to_utc_naive(request.start_date), to_utc_naive(request.end_date)
        logger.debug(f"Creating booking for trainer {request.trainer_id}, vehicle {request.vehicle_id}, {start} to {end}")

        try:
            self.validate_window(start, end)
        except (InvalidRange, DurationTooShort, PastStartDate) as e:
            logger.error(f"Rejected booking window {start} to {end}: {e.message}")
            raise

        # Pick up windows that elapsed since the cached status was written.
        # A turned-down request still commits what reconciling found.
        vehicle = self.vehicles.reconcile(request.vehicle_id)
        if vehicle.status != VehicleStatus.AVAILABLE.value:
            logger.error(f"Vehicle {vehicle.reg_no} is {vehicle.status}")
            self.store.commit()
            raise VehicleUnavailable(f"Vehicle is not available (status: {vehicle.status})")

        location = request.requested_location or vehicle.location
        if not same_location(location, vehicle.location):
            self.store.commit()
            raise VehicleUnavailable(f"Vehicle is not stationed at {location}")

        conflicts = self.conflicts.find_conflicts(vehicle.id, start, end)
        if conflicts:
            self.store.commit()
            raise SchedulingConflict(
                "Vehicle is already booked for this time slot",
                details={"conflicting_booking_ids": [b.id for b in conflicts]},
            )

        booking = self.store.create_booking(
            vehicle_id=vehicle.id,
            trainer_id=request.trainer_id,
            trainer_name=request.trainer_name,
            start_date=start,
            end_date=end,
            purpose=request.purpose,
            requested_location=normalize_location(location).value,
            status=BookingStatus.PENDING.value,
            urgency=Urgency(request.urgency).value,
            notes=request.notes,
        )

        # Another request may have inserted the same window between check and insert
        if self.conflicts.has_conflict(vehicle.id, start, end, exclude_booking_id=booking.id):
            self.store.rollback()
            logger.error(f"Concurrent booking detected for vehicle {vehicle.reg_no}, {start} to {end}")
            raise SchedulingConflict("Vehicle is already booked for this time slot")

        self.vehicles.reconcile(vehicle.id)
        context = self._context(booking, vehicle)
        self.notifications.emit(NotificationType.BOOKING_CREATED, context)
        self.notifications.acknowledge_booking(context)
        self.store.commit()
        logger.debug(f"Created booking: {booking.id}")
        return booking

    # Transitions

    def transition_booking(
        self,
        booking_id: str,
        new_status,
        meta: Optional[TransitionMeta] = None,
        revalidate: bool = True,
    ) -> Booking:
        meta = meta or TransitionMeta()
        booking = self.store.get_booking(booking_id)
        current, new = BookingStatus(booking.status), BookingStatus(new_status)

        if not can_transition(current, new):
            logger.error(f"Invalid transition for booking {booking_id}: {current.value} -> {new.value}")
            raise InvalidTransition(current.value, new.value)

        if revalidate and new in REVALIDATED_STATUSES:
            conflicts = self.conflicts.find_conflicts(
                booking.vehicle_id, booking.start_date, booking.end_date, exclude_booking_id=booking.id
            )
            if conflicts:
                raise SchedulingConflict(
                    "Vehicle is already booked for this time slot",
                    details={"conflicting_booking_ids": [b.id for b in conflicts]},
                )

        patch = {"status": new.value}
        if meta.notes is not None:
            patch["notes"] = meta.notes
        self.store.update_booking(booking.id, **patch)

        vehicle = self.store.get_vehicle(booking.vehicle_id)
        if new == BookingStatus.ACTIVE:
            self._open_key_issue(booking, meta)
        elif new == BookingStatus.COMPLETED:
            self._close_key_issue(booking, meta)
            if meta.maintenance_reason:
                self.vehicles.set_manual_status(vehicle.id, VehicleStatus.MAINTENANCE, meta.maintenance_reason)

        self.vehicles.reconcile(vehicle.id)
        self._notify_transition(booking, vehicle, new, meta)
        self.store.commit()
        logger.debug(f"Booking {booking_id}: {current.value} -> {new.value}")
        return booking

    def approve(self, booking_id: str, meta: Optional[TransitionMeta] = None) -> Booking:
        return self.transition_booking(booking_id, BookingStatus.APPROVED, meta)

    def reject(self, booking_id: str, reason: Optional[str] = None, meta: Optional[TransitionMeta] = None) -> Booking:
        meta = meta or TransitionMeta()
        meta.reason = reason or meta.reason
        return self.transition_booking(booking_id, BookingStatus.REJECTED, meta)

    def cancel(self, booking_id: str, meta: Optional[TransitionMeta] = None) -> Booking:
        return self.transition_booking(booking_id, BookingStatus.CANCELLED, meta)

    def issue_key(self, booking_id: str, issued_by_id: str, issued_by_name: Optional[str] = None) -> Booking:
        """Security hands over the keys; the booking becomes active."""
        return self.transition_booking(
            booking_id,
            BookingStatus.ACTIVE,
            TransitionMeta(actor_id=issued_by_id, actor_name=issued_by_name),
        )

    def return_vehicle(
        self,
        booking_id: str,
        condition: str,
        returned_to_id: Optional[str] = None,
        returned_to_name: Optional[str] = None,
        damage_notes: Optional[str] = None,
        maintenance_reason: Optional[str] = None,
        parts: Optional[List[str]] = None,
    ) -> Booking:
        """Security takes the keys back and records the vehicle's condition."""
        return self.transition_booking(
            booking_id,
            BookingStatus.COMPLETED,
            TransitionMeta(
                actor_id=returned_to_id,
                actor_name=returned_to_name,
                condition=ReturnCondition(condition).value,
                damage_notes=damage_notes,
                maintenance_reason=maintenance_reason,
                parts=list(parts or []),
            ),
        )

    # Key issues

    def _open_key_issue(self, booking: Booking, meta: TransitionMeta) -> KeyIssue:
        return self.store.add_key_issue(
            booking_id=booking.id,
            vehicle_id=booking.vehicle_id,
            issued_by=meta.actor_id,
            issued_at=self.now(),
            expected_return=booking.end_date,
            status=KeyIssueStatus.ISSUED.value,
        )

    def _close_key_issue(self, booking: Booking, meta: TransitionMeta):
        for key_issue in self.store.list_key_issues(booking_id=booking.id):
            if key_issue.status == KeyIssueStatus.RETURNED.value:
                continue
            key_issue.status = KeyIssueStatus.RETURNED.value
            key_issue.actual_return = self.now()
            key_issue.return_condition = meta.condition
            key_issue.damage_notes = meta.damage_notes
        self.store.flush()

    def mark_overdue_keys(self) -> int:
        """Flag issued keys whose expected return has passed."""
        now = self.now()
        overdue = [k for k in self.store.list_key_issues(status=KeyIssueStatus.ISSUED.value) if k.expected_return < now]
        for key_issue in overdue:
            key_issue.status = KeyIssueStatus.OVERDUE.value
            logger.warning(f"Key for booking {key_issue.booking_id} is overdue since {key_issue.expected_return}")
        self.store.commit()
        return len(overdue)

    # Notifications

    def _context(self, booking: Booking, vehicle: Vehicle, meta: Optional[TransitionMeta] = None) -> EventContext:
        meta = meta or TransitionMeta()
        return EventContext(
            booking_id=booking.id,
            vehicle_id=vehicle.id,
            vehicle_name=vehicle.display_name,
            location=booking.requested_location,
            trainer_id=booking.trainer_id,
            trainer_name=booking.trainer_name,
            security_name=meta.actor_name,
            condition=meta.condition,
            reason=meta.reason,
            parts=meta.parts,
        )

    def _notify_transition(self, booking: Booking, vehicle: Vehicle, new: BookingStatus, meta: TransitionMeta):
        context = self._context(booking, vehicle, meta)
        if new == BookingStatus.APPROVED:
            self.notifications.emit(NotificationType.BOOKING_APPROVED, context)
        elif new == BookingStatus.REJECTED:
            self.notifications.emit(NotificationType.BOOKING_REJECTED, context)
        elif new == BookingStatus.CANCELLED:
            self.notifications.emit(NotificationType.BOOKING_CANCELLED, context)
        elif new == BookingStatus.ACTIVE:
            self.notifications.emit(NotificationType.KEY_ISSUED, context)
        elif new == BookingStatus.COMPLETED:
            self.notifications.emit(NotificationType.VEHICLE_RETURNED, context)
            if meta.condition == ReturnCondition.DAMAGED.value:
                context.reason = meta.damage_notes
                self.notifications.emit(NotificationType.DAMAGE_REPORTED, context)
            if meta.parts:
                self.notifications.emit(NotificationType.PARTS_REQUESTED, context)
