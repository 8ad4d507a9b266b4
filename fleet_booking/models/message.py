from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON, Text
from fleet_booking.db import Base, new_id
from fleet_booking.models.booking import utcnow


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    sender_name = Column(String, nullable=False)
    sender_role = Column(String, nullable=False)
    recipient_ids = Column(JSON, nullable=False, default=list)
    recipient_roles = Column(JSON, nullable=True)
    location_filter = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    read = Column(Boolean, nullable=False, default=False)
    parent_message_id = Column(String(36), ForeignKey("messages.id"), nullable=True)

    @property
    def is_broadcast(self):
        return not self.recipient_ids
