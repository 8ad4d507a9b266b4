import pytest
from fastapi import status

from fleet_booking.exceptions import NotFound, SchedulingConflict
from fleet_booking.models.notification import Notification, NotificationType
from fleet_booking.models.user import UserRole
from fleet_booking.services.lifecycle import BookingLifecycleManager, BookingRequest
from fleet_booking.services.notifications import (
    EventContext,
    NotificationDispatcher,
    NotificationSink,
    register_sink,
    unregister_sink,
)
from tests.conf_tests import client, clear_db, test_db, FIXED_NOW, login_headers, make_user, make_vehicle


class RecordingSink(NotificationSink):
    def __init__(self):
        self.pushed = []

    def push(self, notification):
        self.pushed.append((notification.type, notification.user_id))


@pytest.fixture
def dispatcher(test_db):
    return NotificationDispatcher(test_db, sinks=[])


def booking_context(trainer, **extra):
    values = dict(
        booking_id="booking-1",
        vehicle_id="vehicle-1",
        vehicle_name="Skoda Octavia (MH14AB0001)",
        location="PTC",
        trainer_id=trainer.id,
        trainer_name=trainer.name,
    )
    values.update(extra)
    return EventContext(**values)


# pylint: disable-next=redefined-outer-name
def test_resolve_recipient_uses_location_synonyms(dispatcher, test_db):
    make_user(test_db, role="admin", location="BLR")
    pune_admin = make_user(test_db, role="admin", location="Pune")
    assert dispatcher.resolve_recipient(UserRole.ADMIN, "PTC") == pune_admin.id
    assert dispatcher.resolve_recipient(UserRole.ADMIN, "Pune Training Center") == pune_admin.id
    assert dispatcher.resolve_recipient(UserRole.SECURITY, "PTC") is None
    assert dispatcher.resolve_recipient(UserRole.ADMIN, None) is None


# pylint: disable-next=redefined-outer-name
def test_missing_recipient_is_skipped(dispatcher, test_db):
    trainer = make_user(test_db)
    created = dispatcher.emit(NotificationType.BOOKING_CREATED, booking_context(trainer))
    assert created == []
    assert test_db.query(Notification).count() == 0


# pylint: disable-next=redefined-outer-name
def test_booking_approved_reaches_trainer_and_security(dispatcher, test_db):
    trainer = make_user(test_db)
    security = make_user(test_db, role="security", location="Pune")
    created = dispatcher.emit(NotificationType.BOOKING_APPROVED, booking_context(trainer))
    assert {(n.user_id, n.title) for n in created} == {
        (trainer.id, "Booking Approved"),
        (security.id, "New Key Issue Required"),
    }


# pylint: disable-next=redefined-outer-name
def test_repeated_event_updates_in_place(dispatcher, test_db):
    trainer = make_user(test_db)
    first = dispatcher.notify(
        NotificationType.BOOKING_REJECTED, trainer.id, "Booking Rejected", "First", related_entity_id="booking-1"
    )
    first.read = True
    test_db.commit()
    original_id, original_timestamp = first.id, first.timestamp

    second = dispatcher.notify(
        NotificationType.BOOKING_REJECTED, trainer.id, "Booking Rejected", "Second", related_entity_id="booking-1"
    )
    test_db.commit()

    rows = test_db.query(Notification).all()
    assert len(rows) == 1
    assert second.id == original_id
    assert second.timestamp == original_timestamp
    assert second.message == "Second"
    assert second.read is False


# pylint: disable-next=redefined-outer-name
def test_distinct_entities_are_not_merged(dispatcher, test_db):
    trainer = make_user(test_db)
    for booking_id in ("booking-1", "booking-2"):
        dispatcher.notify(NotificationType.KEY_ISSUED, trainer.id, "Key Issued", "...", related_entity_id=booking_id)
    test_db.commit()
    assert test_db.query(Notification).count() == 2


# pylint: disable-next=redefined-outer-name
def test_registered_sinks_receive_notifications(test_db):
    trainer = make_user(test_db)
    sink = RecordingSink()
    register_sink(sink)
    try:
        dispatcher = NotificationDispatcher(test_db)
        dispatcher.emit(NotificationType.KEY_ISSUED, booking_context(trainer))
        assert sink.pushed == []
        dispatcher.store.commit()
    finally:
        unregister_sink(sink)
    assert sink.pushed == [("key_issued", trainer.id)]


# pylint: disable-next=redefined-outer-name
def test_rolled_back_notifications_never_reach_sinks(test_db):
    trainer = make_user(test_db)
    sink = RecordingSink()
    dispatcher = NotificationDispatcher(test_db, sinks=[sink])
    dispatcher.emit(NotificationType.KEY_ISSUED, booking_context(trainer))
    dispatcher.store.rollback()
    dispatcher.store.commit()
    assert sink.pushed == []
    assert test_db.query(Notification).count() == 0


# pylint: disable-next=redefined-outer-name
def test_failed_booking_request_pushes_nothing(test_db):
    trainer = make_user(test_db)
    make_user(test_db, role="admin", location="PTC")
    vehicle = make_vehicle(test_db)
    sink = RecordingSink()
    register_sink(sink)
    try:
        manager = BookingLifecycleManager(test_db, now=lambda: FIXED_NOW)
        request = BookingRequest(
            vehicle_id=vehicle.id,
            trainer_id=trainer.id,
            trainer_name=trainer.name,
            start_date=FIXED_NOW.replace(hour=10),
            end_date=FIXED_NOW.replace(hour=12),
            purpose="Brake system testing",
        )
        manager.create_booking(request)
        assert {t for t, _ in sink.pushed} == {"booking_created"}
        sink.pushed.clear()
        with pytest.raises(SchedulingConflict):
            manager.create_booking(request)
    finally:
        unregister_sink(sink)
    assert sink.pushed == []


# pylint: disable-next=redefined-outer-name
def test_rejection_reason_in_message(dispatcher, test_db):
    trainer = make_user(test_db)
    [notification] = dispatcher.emit(
        NotificationType.BOOKING_REJECTED, booking_context(trainer, reason="Vehicle booked for audit")
    )
    assert notification.message.endswith("Reason: Vehicle booked for audit")
    assert notification.details == {"reason": "Vehicle booked for audit"}


# pylint: disable-next=redefined-outer-name
def test_inbox_operations(dispatcher, test_db):
    trainer = make_user(test_db)
    other = make_user(test_db)
    for booking_id in ("booking-1", "booking-2", "booking-3"):
        dispatcher.notify(NotificationType.KEY_ISSUED, trainer.id, "Key Issued", "...", related_entity_id=booking_id)
    test_db.commit()

    inbox = dispatcher.list_for_user(trainer.id)
    assert dispatcher.unread_count(trainer.id) == 3

    dispatcher.mark_as_read(inbox[0].id, trainer.id)
    assert dispatcher.unread_count(trainer.id) == 2

    with pytest.raises(NotFound):
        dispatcher.mark_as_read(inbox[1].id, other.id)

    assert dispatcher.mark_all_as_read(trainer.id) == 2
    assert dispatcher.unread_count(trainer.id) == 0

    dispatcher.delete(inbox[2].id, trainer.id)
    assert len(dispatcher.list_for_user(trainer.id)) == 2


# pylint: disable-next=redefined-outer-name
def test_notification_endpoints(dispatcher, test_db):
    trainer = make_user(test_db)
    dispatcher.notify(NotificationType.KEY_ISSUED, trainer.id, "Key Issued", "...", related_entity_id="booking-1")
    dispatcher.notify(NotificationType.BOOKING_APPROVED, trainer.id, "Booking Approved", "...", related_entity_id="booking-1")
    test_db.commit()
    headers = login_headers(trainer)

    assert client.get("/notifications/unread_count", headers=headers).json() == {"unread": 2}

    notifications = client.get("/notifications/", headers=headers).json()
    response = client.post(f"/notifications/{notifications[0]['id']}/read", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["read"] is True

    unread = client.get("/notifications/?unread_only=true", headers=headers).json()
    assert len(unread) == 1

    client.post("/notifications/read_all", headers=headers)
    assert client.get("/notifications/unread_count", headers=headers).json() == {"unread": 0}

    response = client.delete(f"/notifications/{notifications[1]['id']}", headers=headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT


def test_notifications_require_auth():
    response = client.get("/notifications/")
    assert response.status_code in [
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
    ]
