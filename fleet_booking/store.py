"""
SQLAlchemy-backed resource store.

Writes are staged on the session and flushed; nothing is committed until the
calling service finishes its whole operation and calls ``commit``. A failed
write rolls the session back and surfaces as a ``PersistenceError``.
"""
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fleet_booking.exceptions import ConcurrentModification, NotFound, PersistenceError
from fleet_booking.locations import same_location
from fleet_booking.models.booking import Booking
from fleet_booking.models.key_issue import KeyIssue
from fleet_booking.models.message import Message
from fleet_booking.models.notification import Notification
from fleet_booking.models.user import User
from fleet_booking.models.vehicle import Vehicle

logger = logging.getLogger(__name__)


class ResourceStore:
    def __init__(self, db: Session):
        self.db = db
        self._after_commit: List[Callable[[], None]] = []

    # Transaction control

    def flush(self):
        try:
            self.db.flush()
        except StaleDataError as e:
            self.rollback()
            logger.error(f"Concurrent modification detected on flush: {e}")
            raise ConcurrentModification("Record was modified by another request, please retry")
        except SQLAlchemyError as e:
            self.rollback()
            logger.error(f"Store flush failed: {e}")
            raise PersistenceError("Could not save changes")

    def commit(self):
        try:
            self.db.commit()
        except StaleDataError as e:
            self.rollback()
            logger.error(f"Concurrent modification detected on commit: {e}")
            raise ConcurrentModification("Record was modified by another request, please retry")
        except SQLAlchemyError as e:
            self.rollback()
            logger.error(f"Store commit failed: {e}")
            raise PersistenceError("Could not save changes")
        callbacks, self._after_commit = self._after_commit, []
        for callback in callbacks:
            callback()

    def rollback(self):
        self._after_commit = []
        self.db.rollback()

    def after_commit(self, callback: Callable[[], None]):
        """Run ``callback`` once the current transaction commits. A rollback drops it."""
        self._after_commit.append(callback)

    def _update(self, record, patch):
        for key, value in patch.items():
            setattr(record, key, value)
        self.flush()
        return record

    # Bookings

    def list_bookings(
        self,
        vehicle_id: Optional[str] = None,
        trainer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        exclude_id: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        query = self.db.query(Booking)
        if vehicle_id is not None:
            query = query.filter(Booking.vehicle_id == vehicle_id)
        if trainer_id is not None:
            query = query.filter(Booking.trainer_id == trainer_id)
        if statuses is not None:
            query = query.filter(Booking.status.in_([getattr(s, "value", s) for s in statuses]))
        if exclude_id is not None:
            query = query.filter(Booking.id != exclude_id)
        query = query.order_by(Booking.start_date).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise NotFound("Booking", booking_id)
        return booking

    def create_booking(self, **data) -> Booking:
        booking = Booking(**data)
        self.db.add(booking)
        self.flush()
        return booking

    def update_booking(self, booking_id: str, **patch) -> Booking:
        return self._update(self.get_booking(booking_id), patch)

    # Vehicles

    def list_vehicles(
        self,
        location: Optional[str] = None,
        status: Optional[str] = None,
        brand: Optional[str] = None,
    ) -> List[Vehicle]:
        query = self.db.query(Vehicle)
        if status is not None:
            query = query.filter(Vehicle.status == status)
        if brand is not None:
            query = query.filter(Vehicle.brand == brand)
        vehicles = query.order_by(Vehicle.reg_no).all()
        if location is not None:
            vehicles = [v for v in vehicles if same_location(v.location, location)]
        return vehicles

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
        if vehicle is None:
            raise NotFound("Vehicle", vehicle_id)
        return vehicle

    def create_vehicle(self, **data) -> Vehicle:
        vehicle = Vehicle(**data)
        self.db.add(vehicle)
        self.flush()
        return vehicle

    def update_vehicle(self, vehicle_id: str, **patch) -> Vehicle:
        return self._update(self.get_vehicle(vehicle_id), patch)

    # Users

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFound("User", user_id)
        return user

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def list_users(self, role: Optional[str] = None) -> List[User]:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        return query.order_by(User.username).all()

    def create_user(self, **data) -> User:
        user = User(**data)
        self.db.add(user)
        self.flush()
        return user

    # Notifications

    def find_notification(self, type_: str, user_id: str, related_entity_id: Optional[str]) -> Optional[Notification]:
        return (
            self.db.query(Notification)
            .filter(
                Notification.type == type_,
                Notification.user_id == user_id,
                Notification.related_entity_id == related_entity_id,
            )
            .first()
        )

    def add_notification(self, **data) -> Notification:
        notification = Notification(**data)
        self.db.add(notification)
        self.flush()
        return notification

    def list_notifications(self, user_id: Optional[str] = None, unread_only: bool = False) -> List[Notification]:
        query = self.db.query(Notification)
        if user_id is not None:
            query = query.filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.timestamp.desc()).all()

    def get_notification(self, notification_id: str) -> Notification:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if notification is None:
            raise NotFound("Notification", notification_id)
        return notification

    def delete_notification(self, notification_id: str):
        self.db.delete(self.get_notification(notification_id))
        self.flush()

    # Messages

    def add_message(self, **data) -> Message:
        message = Message(**data)
        self.db.add(message)
        self.flush()
        return message

    def list_messages(self) -> List[Message]:
        return self.db.query(Message).order_by(Message.timestamp.desc()).all()

    def get_message(self, message_id: str) -> Message:
        message = self.db.query(Message).filter(Message.id == message_id).first()
        if message is None:
            raise NotFound("Message", message_id)
        return message

    # Key issues

    def add_key_issue(self, **data) -> KeyIssue:
        key_issue = KeyIssue(**data)
        self.db.add(key_issue)
        self.flush()
        return key_issue

    def list_key_issues(self, status: Optional[str] = None, booking_id: Optional[str] = None) -> List[KeyIssue]:
        query = self.db.query(KeyIssue)
        if status is not None:
            query = query.filter(KeyIssue.status == status)
        if booking_id is not None:
            query = query.filter(KeyIssue.booking_id == booking_id)
        return query.order_by(KeyIssue.issued_at).all()
