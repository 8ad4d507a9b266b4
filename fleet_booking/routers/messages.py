from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from fleet_booking.db import get_db
from fleet_booking.models.user import User
from fleet_booking.schemas.message import MessageCreate, MessageResponse
from fleet_booking.schemas.notification import UnreadCount
from fleet_booking.services.messaging import MessageService
from fleet_booking.utils.auth import get_current_user

router = APIRouter(
    prefix="/messages",
    tags=["messages"],
)


@router.post("/", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(message: MessageCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """
    Send a direct message, a reply, or (admins only) a broadcast.

    - **recipient_ids**: one user for a direct message; empty for a broadcast.
    - **recipient_roles**: (Optional) restrict a broadcast to these roles.
    - **location**: (Optional, super admin) restrict a broadcast to one location.
    - **parent_message_id**: (Optional) reply to this message's sender.
    """
    return MessageService(db).send_message(
        current_user,
        message.content,
        recipient_ids=message.recipient_ids,
        recipient_roles=message.recipient_roles,
        location=message.location,
        parent_message_id=message.parent_message_id,
    )


@router.get("/", response_model=List[MessageResponse])
def get_messages(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Messages visible to the current user, newest first."""
    return MessageService(db).visible_messages(current_user)


@router.get("/unread_count", response_model=UnreadCount)
def get_unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"unread": MessageService(db).unread_count(current_user)}


@router.post("/{message_id}/read", response_model=MessageResponse)
def mark_read(message_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return MessageService(db).mark_as_read(message_id, current_user)
