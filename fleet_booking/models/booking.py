import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from fleet_booking.db import Base, new_id


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED})

# Statuses that still claim their time window on the vehicle
LIVE_STATUSES = frozenset(set(BookingStatus) - TERMINAL_STATUSES)


class Urgency(str, enum.Enum):
    NORMAL = "normal"
    HIGH = "high"


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    trainer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    trainer_name = Column(String, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    purpose = Column(String, nullable=False)
    requested_location = Column(String, nullable=False)
    status = Column(String, nullable=False, default=BookingStatus.PENDING.value, index=True)
    urgency = Column(String, nullable=False, default=Urgency.NORMAL.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    vehicle = relationship("Vehicle", back_populates="bookings")
    trainer = relationship("User", back_populates="bookings")
    key_issues = relationship("KeyIssue", back_populates="booking")

    def overlaps(self, start, end):
        """Half-open overlap of ``[start_date, end_date)`` with ``[start, end)``."""
        return start < self.end_date and end > self.start_date
