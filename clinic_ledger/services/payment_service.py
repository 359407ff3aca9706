import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.cache import ReadThroughCache, invoice_key
from ..core.database import transaction
from ..core.errors import ValidationError
from ..core.locking import serialize_on
from ..core.security import Actor
from ..models.audit_log import AuditAction
from ..models.invoice import Invoice, Payment
from ..schemas.invoice import PaymentCreate
from .audit import AuditSink, NullAuditSink
from .ledger import ZERO, derive_status, ensure_payable, to_money
from .tenant import TenantScopeGuard

logger = logging.getLogger(__name__)

INVOICE_PAYMENT_LOCK = "invoice-payments"


class PaymentReconciler:
    """Records payments and keeps the stored invoice status equal to the
    status derived from the payment sum."""

    def __init__(self, db: Session, audit: AuditSink = None, cache: ReadThroughCache = None):
        self.db = db
        self.audit = audit or NullAuditSink()
        self.cache = cache or ReadThroughCache(enabled=False)
        self.guard = TenantScopeGuard(db)

    def apply_payment(self, actor: Actor, invoice_id: int, data: PaymentCreate) -> Invoice:
        if data.amount is None or data.amount <= ZERO:
            raise ValidationError("Payment amount must be greater than zero")
        amount = to_money(data.amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be at least 0.01")

        with transaction(self.db):
            serialize_on(self.db, INVOICE_PAYMENT_LOCK, actor.clinic_id, invoice_id)
            invoice = self.guard.require_invoice(actor.clinic_id, invoice_id, for_update=True)
            ensure_payable(invoice.status)

            balance = invoice.balance
            if amount > balance:
                logger.warning(
                    f"Rejected over-payment of {amount} on invoice {invoice.invoice_number} "
                    f"(balance {balance})"
                )
                raise ValidationError(
                    f"Payment of {amount} exceeds outstanding balance {balance}"
                )

            invoice.payments.append(Payment(
                amount=amount,
                method=data.method,
                reference=data.reference,
                notes=data.notes,
                payment_date=datetime.utcnow(),
            ))
            previous = invoice.status
            self.reconcile(invoice)
            self.db.flush()
            invoice_number = invoice.invoice_number
            status = invoice.status

        logger.info(
            f"Payment of {amount} ({data.method.value}) applied to invoice {invoice_number}: "
            f"{previous.value} -> {status.value}"
        )
        self.cache.invalidate(invoice_key(actor.clinic_id, invoice_id))
        self.audit.record(
            actor, AuditAction.UPDATE, "Invoice", invoice_id, f"Payment on {invoice_number}"
        )
        return invoice

    def reconcile(self, invoice: Invoice) -> Invoice:
        """Set the stored status from the current payments; safe to repeat."""
        invoice.status = derive_status(invoice.total, invoice.total_paid, invoice.status)
        return invoice
