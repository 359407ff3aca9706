from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.permissions import Operation
from ...core.security import Actor
from ...models.audit_log import AuditAction
from ...schemas.audit import AuditFilter, AuditLogListResponse, AuditLogResponse
from ...services.audit import list_audit_entries
from ...services.pagination import normalize_page, page_count
from ..deps import require_permission

router = APIRouter(prefix="/audit", tags=["Audit"])

@router.get("", response_model=AuditLogListResponse)
async def list_audit_log(
    user_id: Optional[int] = None,
    action: Optional[AuditAction] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(require_permission(Operation.READ_AUDIT)),
    db: Session = Depends(get_db),
):
    """Audit entries for the caller's clinic (admin only)."""
    filters = AuditFilter(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        start_date=start_date,
        end_date=end_date,
    )
    page, limit = normalize_page(page, limit)
    entries, total = list_audit_entries(db, actor.clinic_id, filters, page, limit)
    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )
