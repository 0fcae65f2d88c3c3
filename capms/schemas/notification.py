from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
    id: int
    type: str
    recipient_id: int
    sender_id: Optional[int] = None
    title: str
    message: str
    link: str
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListOut(BaseModel):
    items: List[NotificationOut]
    unread_count: int
    total: int


class ReminderIn(BaseModel):
    subject: str = Field("", max_length=200)
    message: str = ""
    recipient_type: Optional[Literal["all", "low_points", "no_activities"]] = None
    recipients: List[int] = []


class ReminderOut(BaseModel):
    sent: int
