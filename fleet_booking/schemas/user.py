from pydantic import BaseModel, validator
from typing import Optional
from fleet_booking.locations import ALL_LOCATIONS, is_unrestricted
from fleet_booking.models.user import UserRole
from fleet_booking.utils.validation_helpers import validate_location


class UserBase(BaseModel):
    username: str
    name: str
    email: str
    role: UserRole = UserRole.TRAINER
    location: Optional[str] = None

    @validator("location")
    def check_location(cls, value):
        if is_unrestricted(value):
            return ALL_LOCATIONS
        return validate_location(value)


class UserCreate(UserBase):
    password: str


class UserResponse(UserBase):
    id: str

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str
