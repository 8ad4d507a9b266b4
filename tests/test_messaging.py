import pytest
from fastapi import status

from fleet_booking.exceptions import InvalidAddressing, NotFound, ValidationError
from fleet_booking.models.message import Message
from fleet_booking.services.messaging import MessageService, is_visible, resolve_addressing
from tests.conf_tests import client, clear_db, test_db, login_headers, make_user


@pytest.fixture
def service(test_db):
    return MessageService(test_db)


@pytest.fixture
def people(test_db):
    return {
        "trainer": make_user(test_db, role="trainer", location="PTC"),
        "blr_trainer": make_user(test_db, role="trainer", location="BLR"),
        "security": make_user(test_db, role="security", location="Pune"),
        "admin": make_user(test_db, role="admin", location="PTC"),
        "super_admin": make_user(test_db, role="super_admin", location="ALL"),
    }


def broadcast(sender, roles=None, location_filter=None):
    return Message(
        sender_id=sender.id,
        sender_name=sender.name,
        sender_role=sender.role,
        recipient_ids=[],
        recipient_roles=roles,
        location_filter=location_filter,
        content="Fleet inspection on Friday",
    )


# pylint: disable-next=redefined-outer-name
def test_broadcast_visible_to_everyone(people):
    message = broadcast(people["super_admin"])
    assert all(is_visible(message, user) for user in people.values())


# pylint: disable-next=redefined-outer-name
def test_role_broadcast_reaches_everyone_in_location(people):
    message = broadcast(people["super_admin"], roles=["security"])
    assert is_visible(message, people["security"])
    assert is_visible(message, people["trainer"])
    assert is_visible(message, people["admin"])
    assert is_visible(message, people["super_admin"])

    scoped = broadcast(people["super_admin"], roles=["security"], location_filter="PTC")
    assert is_visible(scoped, people["trainer"])
    assert not is_visible(scoped, people["blr_trainer"])


# pylint: disable-next=redefined-outer-name
def test_role_in_recipient_roles_sees_direct_message(people):
    message = Message(
        sender_id=people["admin"].id,
        sender_name=people["admin"].name,
        sender_role="admin",
        recipient_ids=[people["trainer"].id],
        recipient_roles=["security"],
        content="Octavia keys are with the gate",
    )
    assert is_visible(message, people["trainer"])
    assert is_visible(message, people["security"])
    assert not is_visible(message, people["blr_trainer"])
    assert not is_visible(message, people["super_admin"])


# pylint: disable-next=redefined-outer-name
def test_role_match_still_needs_location(people):
    message = Message(
        sender_id=people["super_admin"].id,
        sender_name=people["super_admin"].name,
        sender_role="super_admin",
        recipient_ids=[people["admin"].id],
        recipient_roles=["trainer"],
        location_filter="BLR",
        content="Bangalore trainers, see the admin",
    )
    assert is_visible(message, people["blr_trainer"])
    assert not is_visible(message, people["trainer"])
    assert is_visible(message, people["admin"])


# pylint: disable-next=redefined-outer-name
def test_location_broadcast_uses_synonyms(people):
    message = broadcast(people["super_admin"], location_filter="Pune")
    assert is_visible(message, people["trainer"])
    assert is_visible(message, people["security"])
    assert not is_visible(message, people["blr_trainer"])


# pylint: disable-next=redefined-outer-name
def test_direct_message_visibility(people):
    message = Message(
        sender_id=people["trainer"].id,
        sender_name=people["trainer"].name,
        sender_role="trainer",
        recipient_ids=[people["security"].id],
        content="Where are the keys?",
    )
    assert is_visible(message, people["trainer"])
    assert is_visible(message, people["security"])
    assert not is_visible(message, people["admin"])
    assert not is_visible(message, people["super_admin"])


# pylint: disable-next=redefined-outer-name
def test_trainer_cannot_broadcast(people):
    with pytest.raises(InvalidAddressing):
        resolve_addressing(people["trainer"])
    with pytest.raises(InvalidAddressing):
        resolve_addressing(people["trainer"], recipient_ids=[people["admin"].id, people["security"].id])


# pylint: disable-next=redefined-outer-name
def test_admin_broadcast_scoped_to_own_location(people):
    addressing = resolve_addressing(people["admin"], recipient_roles=["trainer"])
    assert addressing.recipient_ids == []
    assert addressing.recipient_roles == ["trainer"]
    assert addressing.location_filter == "PTC"

    with pytest.raises(InvalidAddressing):
        resolve_addressing(people["admin"], location="BLR")


# pylint: disable-next=redefined-outer-name
def test_super_admin_broadcast(people):
    assert resolve_addressing(people["super_admin"]).location_filter is None
    assert resolve_addressing(people["super_admin"], location="Bangalore").location_filter == "BLR"
    assert resolve_addressing(people["super_admin"], location="ALL").location_filter is None
    with pytest.raises(ValidationError):
        resolve_addressing(people["super_admin"], location="Mumbai")
    with pytest.raises(ValidationError):
        resolve_addressing(people["super_admin"], recipient_roles=["driver"])


# pylint: disable-next=redefined-outer-name
def test_reply_goes_to_parent_sender(service, people):
    question = service.send_message(people["trainer"], "Is the Octavia free?", recipient_ids=[people["admin"].id])
    reply = service.send_message(people["admin"], "Yes", parent_message_id=question.id)
    assert reply.recipient_ids == [people["trainer"].id]
    assert reply.parent_message_id == question.id


# pylint: disable-next=redefined-outer-name
def test_cannot_reply_to_invisible_message(service, people):
    question = service.send_message(people["trainer"], "Private", recipient_ids=[people["admin"].id])
    with pytest.raises(InvalidAddressing):
        service.send_message(people["security"], "Reply", parent_message_id=question.id)


# pylint: disable-next=redefined-outer-name
def test_send_validation(service, people):
    with pytest.raises(ValidationError):
        service.send_message(people["trainer"], "   ", recipient_ids=[people["admin"].id])
    with pytest.raises(NotFound):
        service.send_message(people["trainer"], "Hello", recipient_ids=["missing"])


# pylint: disable-next=redefined-outer-name
def test_visible_messages_and_unread(service, people):
    service.send_message(people["trainer"], "Keys?", recipient_ids=[people["security"].id])
    service.send_message(people["admin"], "Audit at 3pm")
    service.send_message(people["super_admin"], "Bangalore only", location="BLR")

    assert len(service.visible_messages(people["security"])) == 2
    assert len(service.visible_messages(people["blr_trainer"])) == 1
    assert service.unread_count(people["security"]) == 2
    assert service.unread_count(people["trainer"]) == 1

    audit = [m for m in service.visible_messages(people["trainer"]) if m.content == "Audit at 3pm"][0]
    service.mark_as_read(audit.id, people["trainer"])
    assert service.unread_count(people["trainer"]) == 0

    with pytest.raises(InvalidAddressing):
        service.mark_as_read(audit.id, people["blr_trainer"])


# pylint: disable-next=redefined-outer-name
def test_message_endpoints(people):
    trainer_headers = login_headers(people["trainer"])
    admin_headers = login_headers(people["admin"])

    response = client.post(
        "/messages/",
        json={"content": "Need the Virtus tomorrow", "recipient_ids": [people["admin"].id]},
        headers=trainer_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    message_id = response.json()["id"]

    response = client.post("/messages/", json={"content": "Everyone listen"}, headers=trainer_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "InvalidAddressing"

    assert client.get("/messages/unread_count", headers=admin_headers).json() == {"unread": 1}
    inbox = client.get("/messages/", headers=admin_headers).json()
    assert [m["id"] for m in inbox] == [message_id]

    response = client.post(f"/messages/{message_id}/read", headers=admin_headers)
    assert response.json()["read"] is True
