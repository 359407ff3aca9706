from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime
from typing import List, Optional

from ..models.audit_log import AuditAction
from .common import to_naive_utc


class AuditFilter(BaseModel):
    user_id: Optional[int] = None
    action: Optional[AuditAction] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    action: AuditAction
    entity_type: str
    entity_id: str
    entity_name: Optional[str] = None
    created_at: Optional[datetime] = None


class AuditLogListResponse(BaseModel):
    entries: List[AuditLogResponse]
    total: int
    page: int
    pages: int
