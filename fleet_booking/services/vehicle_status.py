"""
Derives each vehicle's operational status from its bookings.

The stored ``Vehicle.status`` is a cache. It is always one of:

* the manual override (``Maintenance`` or ``Inactive``) when one is set;
* ``In Use`` while a booking holds the vehicle;
* ``Available`` otherwise.

A booking holds its vehicle while it is ``active`` (keys are out until the
return is recorded) or while it is ``approved`` and its window has not ended.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from fleet_booking.models.booking import Booking, BookingStatus, utcnow
from fleet_booking.models.notification import NotificationType
from fleet_booking.models.vehicle import Vehicle, VehicleStatus, MANUAL_STATUSES
from fleet_booking.services.notifications import EventContext, NotificationDispatcher
from fleet_booking.store import ResourceStore

logger = logging.getLogger(__name__)


def holds_vehicle(booking: Booking, now: datetime) -> bool:
    status = BookingStatus(booking.status)
    if status == BookingStatus.ACTIVE:
        return True
    return status == BookingStatus.APPROVED and booking.end_date > now


def derive_status(vehicle: Vehicle, bookings: Iterable[Booking], now: datetime) -> VehicleStatus:
    if vehicle.manual_status:
        return VehicleStatus(vehicle.manual_status)
    if any(holds_vehicle(b, now) for b in bookings):
        return VehicleStatus.IN_USE
    return VehicleStatus.AVAILABLE


class VehicleStatusSynchronizer:
    def __init__(
        self,
        db: Session,
        store: Optional[ResourceStore] = None,
        notifications: Optional[NotificationDispatcher] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store or ResourceStore(db)
        self.notifications = notifications or NotificationDispatcher(db, store=self.store)
        self.now = now

    def reconcile(self, vehicle_id: str) -> Vehicle:
        """Recompute and stage the vehicle's status. The caller commits."""
        vehicle = self.store.get_vehicle(vehicle_id)
        bookings = self.store.list_bookings(
            vehicle_id=vehicle_id,
            statuses=(BookingStatus.APPROVED, BookingStatus.ACTIVE),
        )
        status = derive_status(vehicle, bookings, self.now())
        if vehicle.status != status.value:
            logger.debug(f"Vehicle {vehicle.reg_no}: {vehicle.status} -> {status.value}")
            self.store.update_vehicle(vehicle_id, status=status.value)
        return vehicle

    def reconcile_all(self) -> int:
        """Sweep every vehicle and commit; returns how many changed status."""
        changed = 0
        for vehicle in self.store.list_vehicles():
            before = vehicle.status
            if self.reconcile(vehicle.id).status != before:
                changed += 1
        self.store.commit()
        if changed:
            logger.info(f"Reconciliation sweep updated {changed} vehicles")
        return changed

    def set_manual_status(self, vehicle_id: str, manual_status: Optional[VehicleStatus], reason: Optional[str] = None) -> Vehicle:
        """Set or clear the manual override and reconcile; staged, not committed."""
        if manual_status is not None and manual_status not in MANUAL_STATUSES:
            raise ValueError(f"{manual_status} cannot be set manually")
        vehicle = self.store.update_vehicle(
            vehicle_id,
            manual_status=manual_status.value if manual_status else None,
        )
        self.reconcile(vehicle_id)
        if manual_status == VehicleStatus.MAINTENANCE:
            self.notifications.emit(
                NotificationType.MAINTENANCE_REQUIRED,
                EventContext(
                    vehicle_id=vehicle.id,
                    vehicle_name=vehicle.display_name,
                    location=vehicle.location,
                    reason=reason or "Marked for maintenance",
                ),
            )
        return vehicle

    def set_maintenance(self, vehicle_id: str, on: bool, reason: Optional[str] = None) -> Vehicle:
        vehicle = self.store.get_vehicle(vehicle_id)
        if not on and vehicle.manual_status != VehicleStatus.MAINTENANCE.value:
            # Clearing maintenance never lifts an Inactive override
            return vehicle
        vehicle = self.set_manual_status(vehicle_id, VehicleStatus.MAINTENANCE if on else None, reason)
        self.store.commit()
        logger.debug(f"Maintenance override for vehicle {vehicle_id} set to {on}")
        return vehicle
