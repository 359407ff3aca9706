import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.cache import ReadThroughCache, invoice_key
from ..core.database import transaction
from ..core.errors import InvalidStateError, InvalidTransitionError, ValidationError
from ..core.locking import serialize_on
from ..core.security import Actor
from ..models.audit_log import AuditAction
from ..models.clinic import ClinicCounter
from ..models.invoice import Invoice, InvoiceItem, InvoiceStatus, Payment
from ..schemas.invoice import InvoiceCreate, InvoiceFilter, InvoiceResponse, InvoiceUpdate
from .audit import AuditSink, NullAuditSink
from .ledger import (
    ZERO, compute_line, compute_totals, derive_status, ensure_deletable, format_invoice_number,
    parse_invoice_number, to_money,
)
from .pagination import normalize_page, page_count
from .tenant import TenantScopeGuard

logger = logging.getLogger(__name__)

INVOICE_COUNTER = "invoice"


class InvoiceService:
    def __init__(self, db: Session, audit: AuditSink = None, cache: ReadThroughCache = None):
        self.db = db
        self.audit = audit or NullAuditSink()
        self.cache = cache or ReadThroughCache(enabled=False)
        self.guard = TenantScopeGuard(db)

    def next_invoice_number(self, clinic_id: int) -> str:
        """Claim the clinic's next number; must run inside the creating transaction.

        The counter row is locked for the rest of the transaction, so
        concurrent creations for one clinic take numbers strictly in turn.
        A clinic without a counter row is seeded from its latest invoice.
        """
        serialize_on(self.db, INVOICE_COUNTER, clinic_id)
        counter = (
            self.db.query(ClinicCounter)
            .filter(ClinicCounter.clinic_id == clinic_id, ClinicCounter.name == INVOICE_COUNTER)
            .with_for_update()
            .first()
        )
        if counter is None:
            last = (
                self.db.query(Invoice.invoice_number)
                .filter(Invoice.clinic_id == clinic_id)
                .order_by(Invoice.id.desc())
                .first()
            )
            counter = ClinicCounter(
                clinic_id=clinic_id,
                name=INVOICE_COUNTER,
                value=parse_invoice_number(last[0] if last else None),
            )
            self.db.add(counter)

        counter.value += 1
        self.db.flush()
        return format_invoice_number(counter.value)

    def create_invoice(self, actor: Actor, data: InvoiceCreate) -> Invoice:
        """Create an invoice and its items atomically, numbered per clinic."""
        if not data.items:
            raise ValidationError("An invoice needs at least one item")

        lines = [
            (item, compute_line(item.quantity, item.unit_price, item.discount))
            for item in data.items
        ]
        totals = compute_totals((amounts.total for _, amounts in lines), discount=data.discount)

        with transaction(self.db):
            self.guard.require_patient(actor.clinic_id, data.patient_id)
            invoice_number = self.next_invoice_number(actor.clinic_id)

            invoice = Invoice(
                clinic_id=actor.clinic_id,
                patient_id=data.patient_id,
                issued_by_id=actor.user_id,
                invoice_number=invoice_number,
                issue_date=datetime.utcnow(),
                due_date=data.due_date,
                subtotal=totals.subtotal,
                discount=totals.discount,
                tax=totals.tax,
                total=totals.total,
                status=derive_status(totals.total, ZERO, InvoiceStatus.PENDING),
                notes=data.notes,
                items=[
                    InvoiceItem(
                        service_id=item.service_id,
                        description=item.description,
                        quantity=amounts.quantity,
                        unit_price=amounts.unit_price,
                        discount=amounts.discount,
                        total=amounts.total,
                    )
                    for item, amounts in lines
                ],
            )
            self.db.add(invoice)
            self.db.flush()
            invoice_id = invoice.id

        logger.info(
            f"Invoice {invoice_number} (id={invoice_id}) created for patient "
            f"{data.patient_id} in clinic {actor.clinic_id}: total {totals.total}"
        )
        self.audit.record(actor, AuditAction.CREATE, "Invoice", invoice_id, invoice_number)
        return invoice

    def get_invoice(self, actor: Actor, invoice_id: int) -> Invoice:
        return self.guard.require_invoice(actor.clinic_id, invoice_id)

    def read_invoice(self, actor: Actor, invoice_id: int) -> dict:
        """Serialized view of one invoice, served from cache when possible."""
        def load():
            invoice = self.get_invoice(actor, invoice_id)
            return InvoiceResponse.model_validate(invoice).model_dump(mode="json")

        return self.cache.read_through(invoice_key(actor.clinic_id, invoice_id), load)

    def list_invoices(
        self, actor: Actor, filters: InvoiceFilter, page: int = 1, limit: int = None
    ) -> Tuple[List[Invoice], int, int, int, dict]:
        page, limit = normalize_page(page, limit)
        conditions = [Invoice.clinic_id == actor.clinic_id]
        if filters.patient_id is not None:
            conditions.append(Invoice.patient_id == filters.patient_id)
        if filters.status is not None:
            conditions.append(Invoice.status == filters.status)
        if filters.start_date is not None:
            conditions.append(Invoice.issue_date >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(Invoice.issue_date < filters.end_date)
        query = self.db.query(Invoice).filter(*conditions)

        total = query.count()
        invoices = (
            query.order_by(Invoice.issue_date.desc(), Invoice.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        # Summary covers the whole filtered set, not just this page
        total_amount = (
            self.db.query(func.coalesce(func.sum(Invoice.total), 0))
            .filter(*conditions)
            .scalar()
        )
        total_paid = (
            self.db.query(func.coalesce(func.sum(Payment.amount), 0))
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .filter(*conditions)
            .scalar()
        )
        total_amount = to_money(total_amount or ZERO)
        total_paid = to_money(total_paid or ZERO)
        summary = {
            "total_invoices": total,
            "total_amount": total_amount,
            "total_paid": total_paid,
            "total_pending": total_amount - total_paid,
        }
        return invoices, total, page, page_count(total, limit), summary

    def update_invoice(self, actor: Actor, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        """Update due date and notes, or cancel.

        Payment-driven statuses are derived from the ledger; the only status
        a caller may set is CANCELLED.
        """
        changes = data.model_dump(exclude_unset=True)

        with transaction(self.db):
            invoice = self.guard.require_invoice(actor.clinic_id, invoice_id, for_update=True)

            target = changes.get("status")
            if target is not None and target != invoice.status:
                if invoice.status == InvoiceStatus.CANCELLED:
                    raise InvalidStateError("Invoice is cancelled")
                if target != InvoiceStatus.CANCELLED:
                    raise InvalidTransitionError(
                        f"Invoice status {target.value} is derived from payments"
                    )
                if invoice.status == InvoiceStatus.PAID:
                    raise InvalidStateError("Cannot cancel a paid invoice")
                invoice.status = InvoiceStatus.CANCELLED
                logger.info(f"Invoice {invoice.invoice_number} cancelled in clinic {actor.clinic_id}")

            if "due_date" in changes:
                invoice.due_date = changes["due_date"]
            if "notes" in changes:
                invoice.notes = changes["notes"]

            self.db.flush()
            invoice_number = invoice.invoice_number

        self.cache.invalidate(invoice_key(actor.clinic_id, invoice_id))
        self.audit.record(actor, AuditAction.UPDATE, "Invoice", invoice_id, invoice_number)
        return invoice

    def delete_invoice(self, actor: Actor, invoice_id: int) -> None:
        """Remove an unpaid invoice that has no payments."""
        with transaction(self.db):
            invoice = self.guard.require_invoice(actor.clinic_id, invoice_id, for_update=True)
            payment_count = (
                self.db.query(func.count(Payment.id))
                .filter(Payment.invoice_id == invoice.id)
                .scalar()
            )
            try:
                ensure_deletable(invoice.status, payment_count)
            except InvalidStateError:
                logger.warning(
                    f"Refused to delete invoice {invoice.invoice_number}: "
                    f"status={invoice.status.value}, payments={payment_count}"
                )
                raise
            invoice_number = invoice.invoice_number
            self.db.delete(invoice)

        logger.info(f"Invoice {invoice_number} deleted from clinic {actor.clinic_id}")
        self.cache.invalidate(invoice_key(actor.clinic_id, invoice_id))
        self.audit.record(actor, AuditAction.DELETE, "Invoice", invoice_id, invoice_number)
