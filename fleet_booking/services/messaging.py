"""
Message visibility and addressing.

Trainers and security staff can only write to one person at a time. Admins
may also broadcast, but their broadcasts never leave their own location.
Super admins may broadcast to a role, a location, or everyone.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from fleet_booking.exceptions import InvalidAddressing, ValidationError
from fleet_booking.locations import is_unrestricted, location_matches, normalize_location
from fleet_booking.models.booking import utcnow
from fleet_booking.models.message import Message
from fleet_booking.models.user import User, UserRole, PRIVILEGED_ROLES
from fleet_booking.store import ResourceStore

logger = logging.getLogger(__name__)


@dataclass
class Addressing:
    recipient_ids: List[str]
    recipient_roles: Optional[List[str]] = None
    location_filter: Optional[str] = None


def is_visible(message: Message, viewer: User) -> bool:
    """
    Authors and named recipients always see a message. Otherwise a broadcast,
    or a message naming the viewer's role, is shown when its location filter
    matches the viewer.
    """
    if message.sender_id == viewer.id:
        return True
    if viewer.id in (message.recipient_ids or []):
        return True
    if not location_matches(message.location_filter, viewer.location):
        return False
    return message.is_broadcast or viewer.role in (message.recipient_roles or [])


def resolve_addressing(
    sender: User,
    recipient_ids: Optional[List[str]] = None,
    recipient_roles: Optional[List[str]] = None,
    location: Optional[str] = None,
    parent: Optional[Message] = None,
) -> Addressing:
    """
    Work out who a new message goes to, or raise ``InvalidAddressing``.

    A reply always goes back to the parent's sender. An empty recipient list
    is a broadcast, optionally narrowed by ``recipient_roles`` and ``location``.
    """
    if parent is not None:
        return Addressing(recipient_ids=[parent.sender_id])

    role = UserRole(sender.role)
    recipient_ids = list(recipient_ids or [])
    try:
        roles = [UserRole(r).value for r in (recipient_roles or [])]
    except ValueError as e:
        raise ValidationError(f"Unknown role in recipient_roles: {e}")

    if recipient_ids:
        if role not in PRIVILEGED_ROLES and len(recipient_ids) != 1:
            raise InvalidAddressing("Direct messages must have exactly one recipient")
        return Addressing(recipient_ids=recipient_ids)

    if role not in PRIVILEGED_ROLES:
        raise InvalidAddressing("Only admins can broadcast messages")

    if role == UserRole.ADMIN:
        if location is not None and not location_matches(location, sender.location):
            raise InvalidAddressing("Admins can only broadcast within their own location")
        scope = None if is_unrestricted(sender.location) else normalize_location(sender.location)
        return Addressing(
            recipient_ids=[],
            recipient_roles=roles or None,
            location_filter=scope.value if scope else None,
        )

    location_filter = None
    if location is not None and not is_unrestricted(location):
        normalized = normalize_location(location)
        if normalized is None:
            raise ValidationError(f"Unknown academy location: {location}")
        location_filter = normalized.value
    return Addressing(recipient_ids=[], recipient_roles=roles or None, location_filter=location_filter)


class MessageService:
    def __init__(self, db: Session, store: Optional[ResourceStore] = None):
        self.store = store or ResourceStore(db)

    def send_message(
        self,
        sender: User,
        content: str,
        recipient_ids: Optional[List[str]] = None,
        recipient_roles: Optional[List[str]] = None,
        location: Optional[str] = None,
        parent_message_id: Optional[str] = None,
    ) -> Message:
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")

        parent = None
        if parent_message_id is not None:
            parent = self.store.get_message(parent_message_id)
            if not is_visible(parent, sender):
                raise InvalidAddressing("Cannot reply to a message you cannot see")

        addressing = resolve_addressing(sender, recipient_ids, recipient_roles, location, parent)
        for recipient_id in addressing.recipient_ids:
            self.store.get_user(recipient_id)

        message = self.store.add_message(
            sender_id=sender.id,
            sender_name=sender.name,
            sender_role=sender.role,
            recipient_ids=addressing.recipient_ids,
            recipient_roles=addressing.recipient_roles,
            location_filter=addressing.location_filter,
            content=content.strip(),
            timestamp=utcnow(),
            read=False,
            parent_message_id=parent_message_id,
        )
        self.store.commit()
        logger.debug(
            f"Message {message.id} from {sender.username} to ids={addressing.recipient_ids} "
            f"roles={addressing.recipient_roles} location={addressing.location_filter}"
        )
        return message

    def visible_messages(self, viewer: User) -> List[Message]:
        return [m for m in self.store.list_messages() if is_visible(m, viewer)]

    def unread_count(self, viewer: User) -> int:
        return sum(1 for m in self.visible_messages(viewer) if not m.read and m.sender_id != viewer.id)

    def mark_as_read(self, message_id: str, viewer: User) -> Message:
        message = self.store.get_message(message_id)
        if not is_visible(message, viewer):
            raise InvalidAddressing("Message is not addressed to you")
        message.read = True
        self.store.commit()
        return message
