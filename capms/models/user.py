from __future__ import annotations

from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from datetime import date, datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    Date,
    DateTime,
    Boolean,
    ForeignKey,
    Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from capms.core.database import Base

if TYPE_CHECKING:
    from capms.models.activity import Activity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------
# ENUM
# --------------------------------------------------

class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


# --------------------------------------------------
# MODEL
# --------------------------------------------------

class User(Base):
    __tablename__ = "users"

    __table_args__ = (
        Index("ix_users_role_branch_semester", "role", "branch", "semester"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # --------------------------------------------------
    # IDENTITY
    # --------------------------------------------------

    full_name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    dob: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    registration_number: Mapped[Optional[str]] = mapped_column(
        String(40),
        nullable=True,
        unique=True,
        index=True,
    )

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.STUDENT,
    )
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # --------------------------------------------------
    # ACADEMIC
    # --------------------------------------------------

    branch: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[str] = mapped_column(String(10), nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    phone: Mapped[str] = mapped_column(String(30), nullable=False, default="")

    # --------------------------------------------------
    # PROFILE VERIFICATION (teacher-gated)
    # --------------------------------------------------

    profile_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    profile_verified_by_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    profile_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # --------------------------------------------------
    # POINTS LEDGER
    # --------------------------------------------------

    # derived: sum of points_assigned over approved activities
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    # --------------------------------------------------
    # RELATIONSHIPS
    # --------------------------------------------------

    subscribed_classes: Mapped[List["SubscribedClass"]] = relationship(
        "SubscribedClass",
        back_populates="teacher",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    activities: Mapped[List["Activity"]] = relationship(
        "Activity",
        back_populates="student",
        foreign_keys="Activity.student_id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"


class SubscribedClass(Base):
    """One (branch, semester, optional section) filter owned by a teacher."""

    __tablename__ = "subscribed_classes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    teacher_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    branch: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[str] = mapped_column(String(10), nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False, default="")

    teacher: Mapped["User"] = relationship("User", back_populates="subscribed_classes")
