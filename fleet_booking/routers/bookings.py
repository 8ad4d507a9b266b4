from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from datetime import date, timedelta
from sqlalchemy.orm import Session
from fleet_booking.db import get_db
from fleet_booking.models.booking import BookingStatus
from fleet_booking.models.user import User, UserRole, PRIVILEGED_ROLES
from fleet_booking.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    TimeSlot,
    VehicleReturn,
)
from fleet_booking.services.availability import free_slots
from fleet_booking.services.lifecycle import BookingLifecycleManager, BookingRequest, TransitionMeta
from fleet_booking.utils.auth import get_current_user, require_roles
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)

# Which roles may move a booking into each status
TRANSITION_ROLES = {
    BookingStatus.APPROVED: {UserRole.ADMIN, UserRole.SUPER_ADMIN},
    BookingStatus.REJECTED: {UserRole.ADMIN, UserRole.SUPER_ADMIN},
    BookingStatus.ACTIVE: {UserRole.SECURITY, UserRole.ADMIN, UserRole.SUPER_ADMIN},
    BookingStatus.COMPLETED: {UserRole.SECURITY, UserRole.ADMIN, UserRole.SUPER_ADMIN},
    BookingStatus.CANCELLED: {UserRole.TRAINER, UserRole.ADMIN, UserRole.SUPER_ADMIN},
}


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a vehicle",
    description="Create a pending booking request for a vehicle. Requires authentication."
)
def create_booking(
    booking: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Request a vehicle for a time window. The booking starts as **pending**.

    - **vehicle_id**: ID of the vehicle to book.
    - **start_date** / **end_date**: booking window, at least one hour long, not in the past.
    - **purpose**: course code or free text.
    - **requested_location**: (Optional) academy location, defaults to the vehicle's.
    """
    logger.debug(f"Creating booking for user: {current_user.username}, vehicle_id: {booking.vehicle_id}")
    manager = BookingLifecycleManager(db)
    return manager.create_booking(
        BookingRequest(
            vehicle_id=booking.vehicle_id,
            trainer_id=current_user.id,
            trainer_name=current_user.name,
            start_date=booking.start_date,
            end_date=booking.end_date,
            purpose=booking.purpose,
            requested_location=booking.requested_location,
            urgency=booking.urgency.value,
            notes=booking.notes,
        )
    )


@router.get(
    "/",
    response_model=List[BookingResponse],
    summary="List bookings",
    description="Retrieve a paginated list of bookings, optionally filtered."
)
def get_bookings(
    skip: int = 0,
    limit: int = 100,
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    vehicle_id: Optional[str] = None,
    trainer_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    bookings = BookingLifecycleManager(db).list_bookings(
        trainer_id=trainer_id,
        vehicle_id=vehicle_id,
        status=status_filter,
        skip=skip,
        limit=limit,
    )
    logger.debug(f"Retrieved {len(bookings)} bookings")
    return bookings


@router.get(
    "/available_slots/",
    response_model=List[TimeSlot],
    summary="List free time slots",
    description="Free slots for a vehicle on a specific date. Requires authentication."
)
def get_available_slots(
    vehicle_id: str,
    date: date,
    duration: int = 60,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    - **vehicle_id**: vehicle to check.
    - **date**: day to check (e.g., 2025-05-04).
    - **duration**: slot length in minutes (default and minimum: 60).
    """
    logger.debug(f"Fetching free slots for vehicle {vehicle_id} on {date}, user: {current_user.username}")
    if duration < 60:
        logger.error(f"Invalid duration: {duration}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duration must be at least 60 minutes")
    slots = free_slots(db, vehicle_id, date, timedelta(minutes=duration))
    logger.debug(f"Found {len(slots)} free slots for vehicle {vehicle_id}")
    return slots


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking by ID",
)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    return BookingLifecycleManager(db).get_booking(booking_id)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Change a booking's status",
    description="Approve, reject, cancel, activate or complete a booking. Requires authentication."
)
def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Move a booking through its lifecycle:
    pending → approved/rejected, approved → active/cancelled, active → completed.
    """
    manager = BookingLifecycleManager(db)
    booking = manager.get_booking(booking_id)

    if UserRole(current_user.role) not in TRANSITION_ROLES.get(update.status, PRIVILEGED_ROLES):
        logger.error(f"User {current_user.username} ({current_user.role}) cannot set booking {booking_id} to {update.status.value}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to make this change")
    if update.status == BookingStatus.CANCELLED and current_user.role == UserRole.TRAINER.value \
            and booking.trainer_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to cancel this booking")

    meta = TransitionMeta(
        actor_id=current_user.id,
        actor_name=current_user.name,
        reason=update.reason,
        notes=update.notes,
    )
    return manager.transition_booking(booking_id, update.status, meta, revalidate=update.revalidate)


@router.post(
    "/{booking_id}/issue-key",
    response_model=BookingResponse,
    summary="Issue vehicle keys",
    description="Hand over keys for an approved booking, making it active."
)
def issue_key(
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.SECURITY, *PRIVILEGED_ROLES)),
):
    return BookingLifecycleManager(db).issue_key(booking_id, current_user.id, current_user.name)


@router.post(
    "/{booking_id}/return",
    response_model=BookingResponse,
    summary="Record a vehicle return",
    description="Take the keys back, record the vehicle condition and complete the booking."
)
def return_vehicle(
    booking_id: str,
    vehicle_return: VehicleReturn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.SECURITY, *PRIVILEGED_ROLES)),
):
    """
    - **condition**: excellent, good, fair or damaged. Damage notifies the location admin.
    - **maintenance_reason**: (Optional) puts the vehicle under maintenance.
    - **parts**: (Optional) parts to request for the vehicle.
    """
    return BookingLifecycleManager(db).return_vehicle(
        booking_id,
        vehicle_return.condition.value,
        returned_to_id=current_user.id,
        returned_to_name=current_user.name,
        damage_notes=vehicle_return.damage_notes,
        maintenance_reason=vehicle_return.maintenance_reason,
        parts=vehicle_return.parts,
    )
