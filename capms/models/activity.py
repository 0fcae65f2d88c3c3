from __future__ import annotations

import enum
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime, timezone

from sqlalchemy import (
    Integer,
    String,
    Text,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capms.core.database import Base

if TYPE_CHECKING:
    from capms.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(e):
    return [m.value for m in e]


class ActivityType(str, enum.Enum):
    SPORTS = "sports"
    CULTURAL = "cultural"
    TECHNICAL = "technical"
    NSS = "nss"
    NCC = "ncc"
    INTERNSHIP = "internship"
    WORKSHOP = "workshop"
    SEMINAR = "seminar"
    HACKATHON = "hackathon"
    PAPER_PUBLICATION = "paper_publication"
    PROJECT = "project"
    VOLUNTEER = "volunteer"
    OTHER = "other"


class ActivityLevel(str, enum.Enum):
    COLLEGE = "college"
    DISTRICT = "district"
    STATE = "state"
    NATIONAL = "national"
    INTERNATIONAL = "international"


class ActivityPosition(str, enum.Enum):
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    NONE = "none"


class ActivityStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CORRECTION_NEEDED = "correction_needed"


class UploadMode(str, enum.Enum):
    MANUAL = "manual"
    AI = "ai"


# shared with the rules table
activity_type_enum = SAEnum(ActivityType, name="activity_type_enum", values_callable=_values)
activity_level_enum = SAEnum(ActivityLevel, name="activity_level_enum", values_callable=_values)


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Owner and submitter (a teacher/admin may submit on a student's behalf)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    submitted_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    submitted_by_role: Mapped[str] = mapped_column(String(20), nullable=False)

    upload_mode: Mapped[UploadMode] = mapped_column(
        SAEnum(UploadMode, name="upload_mode_enum", values_callable=_values),
        nullable=False,
        default=UploadMode.MANUAL,
    )

    # Classification
    activity_type: Mapped[ActivityType] = mapped_column(
        activity_type_enum, nullable=False
    )
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    level: Mapped[ActivityLevel] = mapped_column(
        activity_level_enum, nullable=False
    )
    position: Mapped[ActivityPosition] = mapped_column(
        SAEnum(ActivityPosition, name="activity_position_enum", values_callable=_values),
        nullable=False,
        default=ActivityPosition.NONE,
    )
    organization: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Scoring: suggested is a snapshot of the rule table at submission time
    points_suggested: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[ActivityStatus] = mapped_column(
        SAEnum(ActivityStatus, name="activity_status_enum", values_callable=_values),
        nullable=False,
        default=ActivityStatus.PENDING,
    )

    # Review metadata
    teacher_comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    verified_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Document store reference
    doc_url: Mapped[str] = mapped_column(Text, nullable=False)
    doc_storage_id: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    student: Mapped["User"] = relationship(
        "User", back_populates="activities", foreign_keys=[student_id]
    )

    __table_args__ = (
        Index("ix_activities_student_status", "student_id", "status"),
        Index("ix_activities_status_created", "status", "created_at"),
    )
