from pydantic import BaseModel, validator
from datetime import datetime
from typing import List, Optional
from fleet_booking.models.booking import BookingStatus, Urgency
from fleet_booking.models.key_issue import ReturnCondition
from fleet_booking.utils.validation_helpers import validate_location


class BookingBase(BaseModel):
    vehicle_id: str
    start_date: datetime
    end_date: datetime
    purpose: str
    requested_location: Optional[str] = None
    urgency: Urgency = Urgency.NORMAL
    notes: Optional[str] = None

    @validator("requested_location")
    def check_location(cls, value):
        return validate_location(value)


class BookingCreate(BookingBase):
    pass


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    revalidate: bool = True


class VehicleReturn(BaseModel):
    condition: ReturnCondition
    damage_notes: Optional[str] = None
    maintenance_reason: Optional[str] = None
    parts: List[str] = []


class BookingResponse(BaseModel):
    id: str
    vehicle_id: str
    trainer_id: str
    trainer_name: str
    start_date: datetime
    end_date: datetime
    purpose: str
    requested_location: str
    status: BookingStatus
    urgency: Urgency
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    start_time: datetime
    end_time: datetime
