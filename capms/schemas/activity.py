from datetime import date, datetime
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from capms.models.activity import (
    ActivityType,
    ActivityLevel,
    ActivityPosition,
    ActivityStatus,
    UploadMode,
)


class ActivitySubmitIn(BaseModel):
    activity_type: ActivityType
    event_name: str = Field(..., max_length=200)
    description: str = Field("", max_length=2000)
    level: ActivityLevel
    position: Optional[ActivityPosition] = None
    organization: str = Field("", max_length=200)
    start_date: date
    end_date: Optional[date] = None
    upload_mode: UploadMode = UploadMode.MANUAL

    # data URI or bare base64 of the proof document
    doc_base64: str = ""

    # teacher/admin submitting on a student's behalf
    student_id: Optional[int] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "activity_type": "hackathon",
                "event_name": "Smart India Hackathon",
                "level": "state",
                "position": "first",
                "start_date": "2026-03-01",
                "doc_base64": "data:application/pdf;base64,JVBERi0xLjQK",
            }
        }
    }


class ApproveIn(BaseModel):
    points: Optional[int] = Field(None, ge=0)
    comments: str = ""


class EditApprovedIn(BaseModel):
    points: Optional[int] = Field(None, ge=0)
    comments: Optional[str] = None


class RejectIn(BaseModel):
    reason: str = ""


class CorrectionIn(BaseModel):
    comments: str = ""


class StudentBrief(BaseModel):
    id: int
    full_name: str
    registration_number: Optional[str] = None
    branch: str
    semester: str
    section: str

    model_config = ConfigDict(from_attributes=True)


class ActivityOut(BaseModel):
    id: int
    student_id: int
    submitted_by_id: Optional[int] = None
    submitted_by_role: str
    upload_mode: UploadMode

    activity_type: ActivityType
    event_name: str
    description: str
    level: ActivityLevel
    position: ActivityPosition
    organization: str

    start_date: date
    end_date: Optional[date] = None

    points_suggested: int
    points_assigned: int
    status: ActivityStatus

    teacher_comments: str
    verified_by_id: Optional[int] = None
    verified_at: Optional[datetime] = None

    doc_url: str

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityWithStudentOut(ActivityOut):
    student: Optional[StudentBrief] = None


class ActivityListOut(BaseModel):
    items: List[ActivityWithStudentOut]
    total: int
    limit: int
    offset: int


class StatusBucket(BaseModel):
    status: ActivityStatus
    count: int
    points: int


class TypeBucket(BaseModel):
    activity_type: ActivityType
    count: int
    points: int


class StudentStatsOut(BaseModel):
    student_id: int
    by_status: List[StatusBucket]
    by_type: List[TypeBucket]
    total_points: int
    required_points: int
    progress: float
