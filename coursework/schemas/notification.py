from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: int
    user_id: int
    title: str
    content: str
    type: str
    is_read: bool
    related_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCounts(BaseModel):
    messages: int
    notifications: int
    poll_interval_seconds: int


class MarkAllReadResult(BaseModel):
    updated: int
