import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index

from capms.core.database import Base


class AuditAction(str, enum.Enum):
    USER_LOGIN = "user_login"
    PROFILE_UPDATE = "profile_update"
    PROFILE_VERIFY = "profile_verify"
    ACTIVITY_CREATE = "activity_create"
    ACTIVITY_APPROVE = "activity_approve"
    ACTIVITY_EDIT = "activity_edit"
    ACTIVITY_REJECT = "activity_reject"
    ACTIVITY_CORRECTION = "activity_correction"
    RULE_CREATE = "rule_create"
    RULE_UPDATE = "rule_update"
    RULE_DELETE = "rule_delete"
    CLASS_SUBSCRIBE = "class_subscribe"
    SEND_REMINDER = "send_reminder"
    ADMIN_ACTION = "admin_action"


class AuditLog(Base):
    """Append-only compliance record; rows are never updated."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # plain column: the actor may be deleted later, the record stays
    actor_id = Column(Integer, nullable=False, index=True)
    action = Column(String(40), nullable=False)
    target_type = Column(String(30), nullable=False)
    target_id = Column(Integer, nullable=True)
    description = Column(Text, nullable=False, default="")
    meta = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_audit_logs_action_created", "action", "created_at"),
    )
