"""
Audit sink.

Records create/update/delete actions after the primary operation has
committed. Recording is best effort: a failing sink is logged and never
turns a successful operation into a failed one.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.security import Actor
from ..models.audit_log import AuditAction, AuditLog
from ..schemas.audit import AuditFilter

logger = logging.getLogger(__name__)


class AuditSink:
    """Base for audit destinations; subclasses implement ``write``."""

    def record(
        self,
        actor: Actor,
        action: AuditAction,
        entity_type: str,
        entity_id,
        entity_name: Optional[str] = None,
    ) -> None:
        try:
            self.write(actor, action, entity_type, str(entity_id), entity_name)
        except Exception:
            logger.exception(f"Failed to audit {action} {entity_type}:{entity_id}")

    def write(self, actor: Actor, action: AuditAction, entity_type: str,
              entity_id: str, entity_name: Optional[str]) -> None:
        raise NotImplementedError


class NullAuditSink(AuditSink):
    def write(self, actor, action, entity_type, entity_id, entity_name) -> None:
        logger.debug(f"Audit disabled, dropping {action} {entity_type}:{entity_id}")


class DatabaseAuditSink(AuditSink):
    """Writes audit rows through its own session, separate from the caller's."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def write(self, actor, action, entity_type, entity_id, entity_name) -> None:
        db = self.session_factory()
        try:
            db.add(AuditLog(
                clinic_id=actor.clinic_id,
                user_id=actor.user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
            ))
            db.commit()
        finally:
            db.close()


def list_audit_entries(
    db: Session, clinic_id: int, filters: AuditFilter, page: int, limit: int
) -> Tuple[List[AuditLog], int]:
    """Most recent first, restricted to one clinic; ``end_date`` is exclusive."""
    query = db.query(AuditLog).filter(AuditLog.clinic_id == clinic_id)
    if filters.user_id is not None:
        query = query.filter(AuditLog.user_id == filters.user_id)
    if filters.action is not None:
        query = query.filter(AuditLog.action == filters.action)
    if filters.entity_type:
        query = query.filter(AuditLog.entity_type == filters.entity_type)
    if filters.entity_id:
        query = query.filter(AuditLog.entity_id == filters.entity_id)
    if filters.start_date is not None:
        query = query.filter(AuditLog.created_at >= filters.start_date)
    if filters.end_date is not None:
        query = query.filter(AuditLog.created_at < filters.end_date)

    total = query.count()
    entries = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return entries, total
