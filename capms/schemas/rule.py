from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from capms.models.activity import ActivityType, ActivityLevel
from capms.models.rule import RulePosition


class RuleBase(BaseModel):
    activity_type: ActivityType
    level: ActivityLevel
    position: RulePosition = RulePosition.ANY
    points: int = Field(..., ge=0)
    description: str = Field(default="", max_length=500)
    is_active: bool = True


class RuleCreate(RuleBase):
    pass


class RuleUpdate(BaseModel):
    activity_type: Optional[ActivityType] = None
    level: Optional[ActivityLevel] = None
    position: Optional[RulePosition] = None
    points: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None


class RuleOut(RuleBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
