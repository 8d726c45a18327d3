# modules/registration/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal
from datetime import datetime

from sailcrew.shared.enums import RegistrationStatus, RegistrationSource, AssessmentStage


class AnswerIn(BaseModel):
    requirement_id: int = Field(..., gt=0)
    answer_text: Optional[str] = Field(None, max_length=4000)
    passport_document_id: Optional[int] = Field(None, gt=0)


class RegistrationCreateIn(BaseModel):
    leg_id: int = Field(..., gt=0)
    answers: List[AnswerIn] = []
    # Photo faciale base64 : transmise à l'évaluation en mémoire, jamais stockée
    facial_photo: Optional[str] = Field(None, max_length=8_000_000)


class RegistrationCreatedOut(BaseModel):
    registration_id: int
    status: RegistrationStatus


class RegistrationStatusOut(BaseModel):
    id: int
    leg_id: int
    user_id: int
    status: RegistrationStatus
    source: RegistrationSource
    auto_approved: bool
    aggregate_score: Optional[float] = None
    reasoning: Optional[str] = None
    stopped_at: Optional[AssessmentStage] = None
    assessed_at: Optional[datetime] = None
    owner_decided_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ReviewIn(BaseModel):
    decision: Literal["approve", "deny"]
    note: Optional[str] = Field(None, max_length=500)
