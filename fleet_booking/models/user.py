import enum
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from fleet_booking.db import Base, new_id


class UserRole(str, enum.Enum):
    TRAINER = "trainer"
    ADMIN = "admin"
    SECURITY = "security"
    SUPER_ADMIN = "super_admin"


PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=UserRole.TRAINER.value)
    location = Column(String, nullable=True)

    bookings = relationship("Booking", back_populates="trainer")
