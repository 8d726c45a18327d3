# modules/voyage/schemas.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from sailcrew.shared.enums import RequirementKind, RiskLevel


class RequirementCreateIn(BaseModel):
    kind: RequirementKind
    order: int = 0
    is_required: bool = True

    required_risk_level: Optional[RiskLevel] = None
    min_experience_level: Optional[int] = Field(None, ge=1, le=4)

    skill_name: Optional[str] = Field(None, max_length=100)
    question_text: Optional[str] = Field(None, max_length=2000)
    qualification_criteria: Optional[str] = Field(None, max_length=4000)
    weight: int = Field(5, ge=0, le=10)

    requires_photo_validation: bool = False
    pass_confidence_score: int = Field(7, ge=0, le=10)

    @field_validator("skill_name", "question_text", "qualification_criteria")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class RequirementOut(BaseModel):
    id: int
    voyage_id: int
    kind: RequirementKind
    order: int
    is_required: bool
    required_risk_level: Optional[RiskLevel] = None
    min_experience_level: Optional[int] = None
    skill_name: Optional[str] = None
    question_text: Optional[str] = None
    qualification_criteria: Optional[str] = None
    weight: int
    requires_photo_validation: bool
    pass_confidence_score: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AutoApprovalIn(BaseModel):
    auto_approval_enabled: Optional[bool] = None
    passing_score: Optional[float] = Field(None, ge=0, le=10)


class VoyageSettingsOut(BaseModel):
    id: int
    name: str
    auto_approval_enabled: bool
    passing_score: float
    model_config = ConfigDict(from_attributes=True)
