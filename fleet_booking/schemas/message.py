from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class MessageCreate(BaseModel):
    content: str
    recipient_ids: List[str] = []
    recipient_roles: Optional[List[str]] = None
    location: Optional[str] = None
    parent_message_id: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    sender_role: str
    recipient_ids: List[str]
    recipient_roles: Optional[List[str]] = None
    location_filter: Optional[str] = None
    content: str
    timestamp: datetime
    read: bool
    parent_message_id: Optional[str] = None

    class Config:
        from_attributes = True
