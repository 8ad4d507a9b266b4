from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from fleet_booking.models.booking import LIVE_STATUSES
from fleet_booking.models.vehicle import Vehicle, VehicleStatus
from fleet_booking.services.conflicts import ConflictResolver
from fleet_booking.store import ResourceStore

# Bookable day at the academies, 08:00 to 18:00
DAY_START_HOUR = 8
DAY_LENGTH = timedelta(hours=10)


def find_available_vehicles(
    db: Session,
    location: str,
    start_time: datetime,
    end_time: datetime,
    brand: Optional[str] = None,
) -> List[Vehicle]:
    """
    Vehicles at ``location`` that are Available and free for the whole window.
    """
    store = ResourceStore(db)
    resolver = ConflictResolver(db, store=store)
    candidates = store.list_vehicles(location=location, status=VehicleStatus.AVAILABLE.value, brand=brand)
    return [v for v in candidates if not resolver.has_conflict(v.id, start_time, end_time)]


def free_slots(db: Session, vehicle_id: str, day: date, duration: timedelta) -> List[Dict[str, datetime]]:
    """
    Consecutive free slots of ``duration`` for a vehicle on ``day``.
    """
    store = ResourceStore(db)
    store.get_vehicle(vehicle_id)

    day_start = datetime.combine(day, datetime.min.time()) + timedelta(hours=DAY_START_HOUR)
    day_end = day_start + DAY_LENGTH

    bookings = [
        b for b in store.list_bookings(vehicle_id=vehicle_id, statuses=LIVE_STATUSES)
        if b.overlaps(day_start, day_end)
    ]

    slots = []
    current_time = day_start
    for booking in bookings:
        while current_time + duration <= booking.start_date:
            slot_end = current_time + duration
            slots.append({"start_time": current_time, "end_time": slot_end})
            current_time = slot_end
        current_time = max(current_time, booking.end_date)

    while current_time + duration <= day_end:
        slot_end = current_time + duration
        slots.append({"start_time": current_time, "end_time": slot_end})
        current_time = slot_end

    return slots
