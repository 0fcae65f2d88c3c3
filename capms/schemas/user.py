from datetime import date, datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from capms.models.user import UserRole


NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=150)]
CodeStr = Annotated[str, StringConstraints(strip_whitespace=True, to_upper=True, max_length=20)]


class ClassIn(BaseModel):
    branch: CodeStr
    semester: CodeStr
    section: CodeStr = ""


class SubscribeClassesIn(BaseModel):
    classes: List[ClassIn] = []


class ClassOut(BaseModel):
    branch: str
    semester: str
    section: str

    model_config = {"from_attributes": True}


class UserOut(BaseModel):
    """Safe user view; password_hash is never included."""

    id: int
    full_name: str
    email: str
    registration_number: Optional[str] = None
    role: UserRole
    branch: str
    semester: str
    section: str
    phone: str
    verified: bool
    profile_verified: bool
    total_points: int
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListOut(BaseModel):
    items: List[UserOut]
    total: int
    limit: int
    offset: int


class UserCreate(BaseModel):
    full_name: NameStr
    email: EmailStr
    password: str = Field(..., min_length=6)
    registration_number: Optional[str] = None
    role: UserRole
    branch: CodeStr
    semester: CodeStr = "S1"
    section: CodeStr = ""
    dob: Optional[date] = None


class UserUpdate(BaseModel):
    # no total_points: only the engine writes the ledger
    full_name: Optional[NameStr] = None
    branch: Optional[CodeStr] = None
    semester: Optional[CodeStr] = None
    section: Optional[CodeStr] = None
    role: Optional[UserRole] = None
    verified: Optional[bool] = None


class ProfileUpdate(BaseModel):
    semester: Optional[CodeStr] = None
    section: Optional[CodeStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)


class LedgerCheckOut(BaseModel):
    student_id: int
    stored_total: int
    expected_total: int
    consistent: bool
