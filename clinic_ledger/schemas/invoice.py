from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..models.invoice import InvoiceStatus, PaymentMethod
from .common import to_naive_utc


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    service_id: Optional[int] = None
    quantity: int
    unit_price: Decimal
    discount: Decimal = Decimal("0")


class InvoiceCreate(BaseModel):
    patient_id: int
    items: List[InvoiceItemCreate]
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    discount: Decimal = Decimal("0")

    @field_validator("due_date")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatus] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class InvoiceFilter(BaseModel):
    patient_id: Optional[int] = None
    status: Optional[InvoiceStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_to_utc(cls, value):
        return to_naive_utc(value)


class PaymentCreate(BaseModel):
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_id: Optional[int] = None
    description: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None
    payment_date: datetime


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    clinic_id: int
    patient_id: int
    issued_by_id: Optional[int] = None
    invoice_number: str
    issue_date: datetime
    due_date: Optional[datetime] = None
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    line_discount_total: Decimal
    total_paid: Decimal
    balance: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    items: List[InvoiceItemResponse]
    payments: List[PaymentResponse]


class InvoiceSummary(BaseModel):
    total_invoices: int
    total_amount: Decimal
    total_paid: Decimal
    total_pending: Decimal


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]
    total: int
    page: int
    pages: int
    summary: InvoiceSummary
