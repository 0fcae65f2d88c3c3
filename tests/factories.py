"""Builders shared by the test modules."""

import itertools
from datetime import date

from capms.core.document_store import DocumentStore, StoredDocument, decode_data_uri
from capms.core.security import create_access_token, hash_password
from capms.models import (
    Activity,
    ActivityLevel,
    ActivityPosition,
    ActivityStatus,
    ActivityType,
    Rule,
    RulePosition,
    SubscribedClass,
    User,
    UserRole,
)
from capms.schemas.activity import ActivitySubmitIn
from capms.services.errors import DependencyError
from capms.services.scoping import Caller

PDF_DOC = "data:application/pdf;base64,JVBERi0xLjQK"
PASSWORD = "pass123"
_PASSWORD_HASH = hash_password(PASSWORD)
_seq = itertools.count(1)


class FakeDocumentStore(DocumentStore):
    """In-memory store; flip ``fail_store``/``fail_delete`` to simulate outages."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_store = False
        self.fail_delete = False

    async def store(self, data, folder="activity_documents"):
        payload, content_type = decode_data_uri(data)
        if self.fail_store:
            raise DependencyError("Document storage unavailable")
        storage_id = f"{folder}/doc-{next(_seq)}"
        self.objects[storage_id] = (payload, content_type)
        return StoredDocument(url=f"https://docs.test/{storage_id}", storage_id=storage_id)

    async def delete(self, storage_id):
        if self.fail_delete:
            raise DependencyError("Document delete failed")
        self.objects.pop(storage_id, None)
        self.deleted.append(storage_id)


async def make_user(db, role=UserRole.STUDENT, branch="CS", semester="S5", section="A", classes=(), **kw):
    n = next(_seq)
    user = User(
        full_name=kw.pop("full_name", f"{role.value.title()} {n}"),
        email=kw.pop("email", f"{role.value}{n}@capms.test"),
        password_hash=_PASSWORD_HASH,
        registration_number=kw.pop("registration_number", f"REG{n:04d}"),
        role=role,
        branch=branch,
        semester=semester,
        section=section,
        verified=kw.pop("verified", True),
        **kw,
    )
    user.subscribed_classes = [SubscribedClass(branch=b, semester=s, section=sec) for b, s, sec in classes]
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_student(db, **kw):
    return await make_user(db, UserRole.STUDENT, **kw)


async def make_teacher(db, classes=(("CS", "S5", "A"),), **kw):
    kw.setdefault("semester", "NA")
    kw.setdefault("section", "")
    return await make_user(db, UserRole.TEACHER, classes=classes, **kw)


async def make_admin(db, **kw):
    kw.setdefault("branch", "ADMIN")
    kw.setdefault("semester", "NA")
    kw.setdefault("section", "")
    return await make_user(db, UserRole.ADMIN, **kw)


async def make_rule(db, activity_type="hackathon", level="state", position="any", points=10, is_active=True):
    rule = Rule(
        activity_type=ActivityType(activity_type),
        level=ActivityLevel(level),
        position=RulePosition(position),
        points=points,
        is_active=is_active,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


async def make_activity(db, student, status=ActivityStatus.PENDING, points_suggested=10, points_assigned=0, **kw):
    activity = Activity(
        student_id=student.id,
        submitted_by_id=student.id,
        submitted_by_role="student",
        activity_type=kw.pop("activity_type", ActivityType.HACKATHON),
        event_name=kw.pop("event_name", "Hack Night"),
        level=kw.pop("level", ActivityLevel.STATE),
        position=kw.pop("position", ActivityPosition.PARTICIPANT),
        start_date=kw.pop("start_date", date(2026, 3, 1)),
        points_suggested=points_suggested,
        points_assigned=points_assigned,
        status=status,
        doc_url="https://docs.test/x",
        doc_storage_id=kw.pop("doc_storage_id", "activity_documents/x"),
        **kw,
    )
    db.add(activity)
    await db.commit()
    await db.refresh(activity)
    return activity


def caller_for(user) -> Caller:
    return Caller.from_user(user)


def submit_payload(**kw) -> ActivitySubmitIn:
    data = dict(
        activity_type="hackathon",
        event_name="Smart India Hackathon",
        level="state",
        position="first",
        start_date="2026-03-01",
        doc_base64=PDF_DOC,
    )
    data.update(kw)
    return ActivitySubmitIn(**data)


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}


async def total_points(db, student_id) -> int:
    student = await db.get(User, student_id, populate_existing=True)
    return student.total_points
