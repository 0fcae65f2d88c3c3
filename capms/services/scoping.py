"""Teacher visibility filter.

Every listing and action that touches students goes through ``AccessScope``
so the branch/semester/section rules live in one place.
"""

from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import and_, or_, false, true
from sqlalchemy.sql.elements import ColumnElement

from capms.models.user import User, UserRole
from capms.services.errors import AccessDeniedError


@dataclass(frozen=True)
class ClassFilter:
    branch: str
    semester: str
    section: str = ""

    @classmethod
    def of(cls, branch: str, semester: str, section: str | None = None) -> "ClassFilter":
        return cls(
            branch=(branch or "").strip().upper(),
            semester=(semester or "").strip().upper(),
            section=(section or "").strip().upper(),
        )

    def matches(self, branch: str, semester: str, section: str | None) -> bool:
        if self.branch != (branch or "").upper() or self.semester != (semester or "").upper():
            return False
        return not self.section or self.section == (section or "").upper()

    def clause(self) -> ColumnElement:
        conds = [User.branch == self.branch, User.semester == self.semester]
        if self.section:
            conds.append(User.section == self.section)
        return and_(*conds)


@dataclass(frozen=True)
class Caller:
    """Identity handed to the engine by the auth layer."""

    user_id: int
    role: UserRole
    subscribed_classes: tuple[ClassFilter, ...] = field(default_factory=tuple)

    @property
    def is_reviewer(self) -> bool:
        return self.role in (UserRole.TEACHER, UserRole.ADMIN)

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        classes = ()
        if user.role == UserRole.TEACHER:
            classes = tuple(
                ClassFilter.of(c.branch, c.semester, c.section) for c in (user.subscribed_classes or [])
            )
        return cls(user_id=user.id, role=UserRole(user.role), subscribed_classes=classes)


@dataclass(frozen=True)
class AccessScope:
    """Which students a caller may see or act on."""

    unrestricted: bool
    classes: tuple[ClassFilter, ...] = ()
    self_id: int | None = None

    @classmethod
    def for_caller(cls, caller: Caller) -> "AccessScope":
        if caller.role == UserRole.ADMIN:
            return cls(unrestricted=True)
        if caller.role == UserRole.TEACHER:
            return cls(unrestricted=False, classes=tuple(caller.subscribed_classes))
        return cls(unrestricted=False, self_id=caller.user_id)

    def student_clause(self) -> ColumnElement:
        """WHERE clause over ``User`` selecting the visible students."""
        base = User.role == UserRole.STUDENT
        if self.unrestricted:
            return and_(base, true())
        if self.self_id is not None:
            return and_(base, User.id == self.self_id)
        if not self.classes:
            # no subscriptions means nobody, not everybody
            return false()
        return and_(base, or_(*[c.clause() for c in self.classes]))

    def narrowed(
        self,
        branch: str | None = None,
        semester: str | None = None,
        section: str | None = None,
    ) -> ColumnElement:
        """Scope clause intersected with optional query filters."""
        clause = self.student_clause()
        extra = []
        if branch:
            extra.append(User.branch == branch.strip().upper())
        if semester:
            extra.append(User.semester == semester.strip().upper())
        if section:
            extra.append(User.section == section.strip().upper())
        return and_(clause, *extra) if extra else clause

    def allows(self, student: User) -> bool:
        if student is None or student.role != UserRole.STUDENT:
            return False
        if self.unrestricted:
            return True
        if self.self_id is not None:
            return student.id == self.self_id
        return any(c.matches(student.branch, student.semester, student.section) for c in self.classes)

    def ensure_allows(self, student: User) -> None:
        if not self.allows(student):
            raise AccessDeniedError()


def teachers_covering(student: User, teachers: Iterable[User]) -> list[User]:
    """Teachers whose subscriptions cover ``student``."""
    out = []
    for t in teachers:
        scope = AccessScope.for_caller(Caller.from_user(t))
        if scope.allows(student):
            out.append(t)
    return out
