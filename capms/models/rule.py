import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy import Enum as SAEnum

from capms.core.database import Base
from capms.models.activity import activity_type_enum, activity_level_enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RulePosition(str, enum.Enum):
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    ANY = "any"


class Rule(Base):
    __tablename__ = "rules"

    id = Column(Integer, primary_key=True, index=True)

    activity_type = Column(activity_type_enum, nullable=False)
    level = Column(activity_level_enum, nullable=False)
    position = Column(
        SAEnum(RulePosition, name="rule_position_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RulePosition.ANY,
    )
    points = Column(Integer, nullable=False)
    description = Column(String(500), nullable=False, default="")

    # Soft enable/disable keeps historical suggestions explainable
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_rules_lookup", "activity_type", "level", "position"),
    )
