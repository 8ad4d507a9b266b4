"""
Conflict detection for vehicle bookings.

A requested window conflicts with an existing booking of the same vehicle when
the booking still claims its window (pending, approved or active) and the two
half-open intervals ``[start, end)`` overlap. Touching boundaries are free.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from fleet_booking.models.booking import Booking, LIVE_STATUSES
from fleet_booking.store import ResourceStore
from fleet_booking.utils.validation_helpers import to_utc_naive

logger = logging.getLogger(__name__)


class ConflictResolver:
    def __init__(self, db: Session, store: Optional[ResourceStore] = None):
        self.store = store or ResourceStore(db)

    def find_conflicts(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        start, end = to_utc_naive(start), to_utc_naive(end)
        if end <= start:
            raise ValueError("end must be after start")

        bookings = self.store.list_bookings(
            vehicle_id=vehicle_id,
            statuses=LIVE_STATUSES,
            exclude_id=exclude_booking_id,
        )
        conflicts = [b for b in bookings if b.overlaps(start, end)]
        if conflicts:
            logger.warning(
                f"Found {len(conflicts)} conflicting bookings for vehicle {vehicle_id} "
                f"between {start} and {end}: {[b.id for b in conflicts]}"
            )
        return conflicts

    def has_conflict(
        self,
        vehicle_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(self.find_conflicts(vehicle_id, start, end, exclude_booking_id))
