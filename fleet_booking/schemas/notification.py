from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    user_id: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    action_url: Optional[str] = None
    read: bool
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="details")

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread: int
