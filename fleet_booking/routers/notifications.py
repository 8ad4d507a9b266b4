from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from fleet_booking.db import get_db
from fleet_booking.models.user import User
from fleet_booking.schemas.notification import NotificationResponse, UnreadCount
from fleet_booking.services.notifications import NotificationDispatcher
from fleet_booking.utils.auth import get_current_user

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Notifications addressed to the current user, newest first."""
    return NotificationDispatcher(db).list_for_user(current_user.id, unread_only=unread_only)


@router.get("/unread_count", response_model=UnreadCount)
def get_unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"unread": NotificationDispatcher(db).unread_count(current_user.id)}


@router.post("/read_all", response_model=UnreadCount)
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    NotificationDispatcher(db).mark_all_as_read(current_user.id)
    return {"unread": 0}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return NotificationDispatcher(db).mark_as_read(notification_id, current_user.id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    NotificationDispatcher(db).delete(notification_id, current_user.id)
    return None
