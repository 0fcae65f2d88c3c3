import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index

from capms.core.database import Base


class NotificationType(str, enum.Enum):
    REMINDER = "reminder"
    APPROVAL = "approval"
    REJECTION = "rejection"
    CORRECTION = "correction"
    SYSTEM = "system"
    REGISTRATION = "registration"
    PROFILE_UPDATE = "profile_update"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(30), nullable=False)

    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(300), nullable=False, default="")

    read = Column(Boolean, nullable=False, default=False)
    email_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "read", "created_at"),
    )
