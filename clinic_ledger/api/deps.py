from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ..core.cache import ReadThroughCache
from ..core.config import settings
from ..core.database import SessionLocal, get_db, get_redis
from ..core.permissions import Operation, is_allowed
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, TokenPayload, Actor
)
from ..services.appointment_service import AppointmentService
from ..services.audit import AuditSink, DatabaseAuditSink
from ..services.clinical_note_service import ClinicalNoteService
from ..services.invoice_service import InvoiceService
from ..services.payment_service import PaymentReconciler
from ..services.tenant import TenantScopeGuard

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def get_current_actor(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> Actor:
    """Resolve the clinic-scoped actor for this request."""
    return TenantScopeGuard(db).resolve_actor(token_payload)

# Declarative authorization: one dependency, one policy table
def require_permission(operation: Operation):
    """Create a dependency that checks the actor's role against the policy table."""
    def permission_checker(
        actor: Actor = Depends(get_current_actor)
    ) -> Actor:
        if not is_allowed(actor.role, operation):
            raise AuthorizationError(
                f"Role {actor.role.value} may not perform {operation.value}"
            )
        return actor

    return permission_checker

# Collaborators
def get_cache(redis_client = Depends(get_redis)) -> ReadThroughCache:
    """Read-through cache, disabled by configuration."""
    return ReadThroughCache(redis_client, enabled=settings.CACHE_ENABLED)

def get_audit_sink() -> AuditSink:
    """Audit sink writing through its own sessions."""
    return DatabaseAuditSink(SessionLocal)

# Services
def get_appointment_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    cache: ReadThroughCache = Depends(get_cache),
) -> AppointmentService:
    return AppointmentService(db, audit=audit, cache=cache)

def get_note_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    cache: ReadThroughCache = Depends(get_cache),
) -> ClinicalNoteService:
    return ClinicalNoteService(db, audit=audit, cache=cache)

def get_invoice_service(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    cache: ReadThroughCache = Depends(get_cache),
) -> InvoiceService:
    return InvoiceService(db, audit=audit, cache=cache)

def get_payment_reconciler(
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
    cache: ReadThroughCache = Depends(get_cache),
) -> PaymentReconciler:
    return PaymentReconciler(db, audit=audit, cache=cache)
