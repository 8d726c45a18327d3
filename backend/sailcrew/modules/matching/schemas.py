# modules/matching/schemas.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from sailcrew.shared.enums import MatchStatus


class BatchRunIn(BaseModel):
    as_of: Optional[datetime] = None


class BatchReportOut(BaseModel):
    batch_id: str
    as_of: datetime
    legs_processed: int
    candidates_considered: int
    ai_calls: int
    matches_created: int
    budget_exhausted: bool
    legs_failed: int = 0


class MatchOut(BaseModel):
    id: int
    crew_id: int
    leg_id: int
    match_score: float = Field(..., ge=0, le=100)
    composite_score: float
    ai_rationale: Optional[str] = None
    crew_status: MatchStatus
    owner_status: MatchStatus
    expires_at: datetime
    batch_id: str
    registration_id: Optional[int] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class MatchRespondIn(BaseModel):
    response: MatchStatus

    @field_validator("response")
    @classmethod
    def not_pending(cls, v: MatchStatus) -> MatchStatus:
        if v == MatchStatus.PENDING:
            raise ValueError("La réponse doit être accepted, skipped ou declined.")
        return v
