from pydantic import BaseModel, validator
from typing import Optional
from fleet_booking.utils.validation_helpers import validate_location


class VehicleBase(BaseModel):
    brand: str
    model: str
    reg_no: str
    location: str
    notes: Optional[str] = None

    @validator("location")
    def check_location(cls, value):
        return validate_location(value)


class VehicleCreate(VehicleBase):
    pass


class MaintenanceUpdate(BaseModel):
    on: bool
    reason: Optional[str] = None


class VehicleResponse(VehicleBase):
    id: str
    status: str
    manual_status: Optional[str] = None

    class Config:
        from_attributes = True
