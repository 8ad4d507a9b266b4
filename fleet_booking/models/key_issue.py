import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from fleet_booking.db import Base, new_id
from fleet_booking.models.booking import utcnow


class KeyIssueStatus(str, enum.Enum):
    ISSUED = "issued"
    RETURNED = "returned"
    OVERDUE = "overdue"


class ReturnCondition(str, enum.Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    DAMAGED = "damaged"


class KeyIssue(Base):
    __tablename__ = "key_issues"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id"), nullable=False, index=True)
    issued_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    issued_at = Column(DateTime, nullable=False, default=utcnow)
    expected_return = Column(DateTime, nullable=False)
    actual_return = Column(DateTime, nullable=True)
    return_condition = Column(String, nullable=True)
    damage_notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=KeyIssueStatus.ISSUED.value)

    booking = relationship("Booking", back_populates="key_issues")
