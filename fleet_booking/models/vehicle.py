import enum
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship
from fleet_booking.db import Base, new_id
from fleet_booking.models.booking import utcnow


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    MAINTENANCE = "Maintenance"
    INACTIVE = "Inactive"


# Statuses an admin sets by hand; bookings never override them
MANUAL_STATUSES = frozenset({VehicleStatus.MAINTENANCE, VehicleStatus.INACTIVE})


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=new_id)
    brand = Column(String, nullable=False)
    model = Column(String, nullable=False)
    reg_no = Column(String, unique=True, index=True, nullable=False)
    location = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=VehicleStatus.AVAILABLE.value)
    manual_status = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    bookings = relationship("Booking", back_populates="vehicle")

    @property
    def display_name(self):
        return f"{self.brand} {self.model} ({self.reg_no})"
