# modules/documents/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime

from sailcrew.shared.enums import GrantPurpose, AccessType


class GrantCreateIn(BaseModel):
    grantee_id: int = Field(..., gt=0)
    purpose: GrantPurpose
    expires_at: datetime
    max_views: Optional[int] = Field(None, gt=0)
    purpose_reference_id: Optional[int] = None


class GrantOut(BaseModel):
    id: int
    document_id: int
    grantor_id: int
    grantee_id: int
    purpose: GrantPurpose
    purpose_reference_id: Optional[int] = None
    expires_at: datetime
    max_views: Optional[int] = None
    view_count: int = 0
    is_revoked: bool = False
    revoked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AccessLogOut(BaseModel):
    id: int
    document_id: Optional[int] = None
    accessed_by: Optional[int] = None
    access_type: AccessType
    access_granted: bool
    denial_reason: Optional[str] = None
    details: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
