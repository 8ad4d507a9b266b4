from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from datetime import datetime
from sqlalchemy.orm import Session
from fleet_booking.db import get_db
from fleet_booking.models.user import User, PRIVILEGED_ROLES
from fleet_booking.schemas.vehicle import VehicleCreate, VehicleResponse, MaintenanceUpdate
from fleet_booking.services.availability import find_available_vehicles
from fleet_booking.services.vehicle_status import VehicleStatusSynchronizer
from fleet_booking.store import ResourceStore
from fleet_booking.utils.auth import get_current_user, require_roles
from fleet_booking.utils.validation_helpers import to_utc_naive, validate_location
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/vehicles",
    tags=["vehicles"],
)


@router.post("/", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def create_vehicle(
    vehicle: VehicleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PRIVILEGED_ROLES)),
):
    """
    Add a vehicle to a location's fleet. It starts out Available.
    """
    store = ResourceStore(db)
    if any(v.reg_no == vehicle.reg_no for v in store.list_vehicles()):
        logger.error(f"Duplicate registration number: {vehicle.reg_no}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Registration number already exists")
    db_vehicle = store.create_vehicle(**vehicle.model_dump())
    store.commit()
    logger.debug(f"{current_user.username} added vehicle {db_vehicle.reg_no} at {db_vehicle.location}")
    return db_vehicle


@router.get("/", response_model=List[VehicleResponse])
def get_vehicles(
    location: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    brand: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    List vehicles, optionally by location, status and brand.
    """
    return ResourceStore(db).list_vehicles(location=location, status=status_filter, brand=brand)


@router.get("/available/", response_model=List[VehicleResponse])
def get_available_vehicles(
    location: str,
    start_date: datetime,
    end_date: datetime,
    brand: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Vehicles at a location that can be requested for the whole window.
    """
    try:
        location = validate_location(location)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    start, end = to_utc_naive(start_date), to_utc_naive(end_date)
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")
    return find_available_vehicles(db, location, start, end, brand)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(vehicle_id: str, db: Session = Depends(get_db)):
    return ResourceStore(db).get_vehicle(vehicle_id)


@router.put("/{vehicle_id}/maintenance", response_model=VehicleResponse)
def set_maintenance(
    vehicle_id: str,
    update: MaintenanceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PRIVILEGED_ROLES)),
):
    """
    Put a vehicle under maintenance, or release it. Maintenance overrides bookings.
    """
    logger.debug(f"{current_user.username} set maintenance={update.on} on vehicle {vehicle_id}")
    return VehicleStatusSynchronizer(db).set_maintenance(vehicle_id, update.on, update.reason)


@router.post("/{vehicle_id}/reconcile", response_model=VehicleResponse)
def reconcile_vehicle(vehicle_id: str, db: Session = Depends(get_db)):
    """
    Recompute the vehicle's status from its current bookings.
    """
    synchronizer = VehicleStatusSynchronizer(db)
    vehicle = synchronizer.reconcile(vehicle_id)
    synchronizer.store.commit()
    return vehicle
