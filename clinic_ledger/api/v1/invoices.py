from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ...core.permissions import Operation
from ...core.security import Actor
from ...models.invoice import InvoiceStatus
from ...schemas.invoice import (
    InvoiceCreate, InvoiceFilter, InvoiceListResponse, InvoiceResponse,
    InvoiceSummary, InvoiceUpdate, PaymentCreate
)
from ...services.invoice_service import InvoiceService
from ...services.payment_service import PaymentReconciler
from ..deps import get_invoice_service, get_payment_reconciler, require_permission

router = APIRouter(prefix="/invoices", tags=["Invoices"])

@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    actor: Actor = Depends(require_permission(Operation.CREATE_INVOICE)),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Create an invoice with its items; numbered INV-NNNNNN per clinic."""
    invoice = service.create_invoice(actor, data)
    return InvoiceResponse.model_validate(invoice)

@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    patient_id: Optional[int] = None,
    status: Optional[InvoiceStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(require_permission(Operation.READ_INVOICE)),
    service: InvoiceService = Depends(get_invoice_service),
):
    filters = InvoiceFilter(
        patient_id=patient_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    invoices, total, page, pages, summary = service.list_invoices(actor, filters, page, limit)
    return InvoiceListResponse(
        invoices=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        pages=pages,
        summary=InvoiceSummary(**summary),
    )

@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    actor: Actor = Depends(require_permission(Operation.READ_INVOICE)),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.read_invoice(actor, invoice_id)

@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    data: InvoiceUpdate,
    actor: Actor = Depends(require_permission(Operation.UPDATE_INVOICE)),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Update due date / notes or cancel the invoice."""
    invoice = service.update_invoice(actor, invoice_id, data)
    return InvoiceResponse.model_validate(invoice)

@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    actor: Actor = Depends(require_permission(Operation.DELETE_INVOICE)),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Delete an invoice that is not paid and has no payments."""
    service.delete_invoice(actor, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/{invoice_id}/payments", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def apply_payment(
    invoice_id: int,
    data: PaymentCreate,
    actor: Actor = Depends(require_permission(Operation.APPLY_PAYMENT)),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Record a payment and return the invoice with its new balance and status."""
    invoice = reconciler.apply_payment(actor, invoice_id, data)
    return InvoiceResponse.model_validate(invoice)
