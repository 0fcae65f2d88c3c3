from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from capms.schemas.activity import ActivityWithStudentOut


class TeacherDashboardOut(BaseModel):
    total_students: int
    pending_activities: int
    approved_activities: int
    rejected_activities: int
    recent_activities: List[ActivityWithStudentOut]


class CountBucket(BaseModel):
    key: str
    count: int


class TopStudent(BaseModel):
    id: int
    full_name: str
    registration_number: Optional[str] = None
    branch: str
    semester: str
    total_points: int

    model_config = {"from_attributes": True}


class SystemStatsOut(BaseModel):
    total_students: int
    total_teachers: int
    total_activities: int
    pending_activities: int
    approved_activities: int
    by_type: List[CountBucket]
    by_month: List[CountBucket]
    top_students: List[TopStudent]


class AuditLogOut(BaseModel):
    id: int
    actor_id: int
    action: str
    target_type: str
    target_id: Optional[int] = None
    description: str
    meta: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListOut(BaseModel):
    items: List[AuditLogOut]
    total: int
    limit: int
    offset: int
