from capms.models.user import User, UserRole, SubscribedClass
from capms.models.activity import (
    Activity,
    ActivityType,
    ActivityLevel,
    ActivityPosition,
    ActivityStatus,
    UploadMode,
)
from capms.models.rule import Rule, RulePosition
from capms.models.notification import Notification, NotificationType
from capms.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "UserRole",
    "SubscribedClass",
    "Activity",
    "ActivityType",
    "ActivityLevel",
    "ActivityPosition",
    "ActivityStatus",
    "UploadMode",
    "Rule",
    "RulePosition",
    "Notification",
    "NotificationType",
    "AuditLog",
    "AuditAction",
]
