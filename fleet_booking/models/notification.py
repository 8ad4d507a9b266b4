import enum
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON, Text
from fleet_booking.db import Base, new_id
from fleet_booking.models.booking import utcnow


class NotificationType(str, enum.Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    KEY_ISSUED = "key_issued"
    VEHICLE_RETURNED = "vehicle_returned"
    DAMAGE_REPORTED = "damage_reported"
    PARTS_REQUESTED = "parts_requested"
    MAINTENANCE_REQUIRED = "maintenance_required"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    related_entity_type = Column(String, nullable=True)
    related_entity_id = Column(String(36), nullable=True, index=True)
    action_url = Column(String, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)
