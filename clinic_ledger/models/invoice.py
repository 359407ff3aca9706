from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Numeric, Text, UniqueConstraint,
    Enum as SQLEnum
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from decimal import Decimal
import enum

from ..core.database import Base

MONEY = Numeric(12, 2)

class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"

class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    CHECK = "CHECK"

class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("clinic_id", "invoice_number", name="uq_invoice_clinic_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    issued_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    invoice_number = Column(String(20), nullable=False)
    issue_date = Column(DateTime, nullable=False, server_default=func.now())
    due_date = Column(DateTime, nullable=True)

    # Amounts
    subtotal = Column(MONEY, nullable=False, default=Decimal("0"))
    discount = Column(MONEY, nullable=False, default=Decimal("0"))
    tax = Column(MONEY, nullable=False, default=Decimal("0"))
    total = Column(MONEY, nullable=False, default=Decimal("0"))

    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="invoices")
    items = relationship(
        "InvoiceItem", back_populates="invoice",
        cascade="all, delete-orphan", order_by="InvoiceItem.id"
    )
    payments = relationship(
        "Payment", back_populates="invoice",
        cascade="all, delete-orphan", order_by="Payment.id"
    )

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    @property
    def balance(self) -> Decimal:
        return self.total - self.total_paid

    @property
    def line_discount_total(self) -> Decimal:
        return sum((i.discount for i in self.items), Decimal("0"))

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', total={self.total}, status='{self.status}')>"

class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, nullable=True)

    description = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(MONEY, nullable=False)
    discount = Column(MONEY, nullable=False, default=Decimal("0"))
    total = Column(MONEY, nullable=False)

    invoice = relationship("Invoice", back_populates="items")

    def __repr__(self):
        return f"<InvoiceItem(id={self.id}, description='{self.description}', total={self.total})>"

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(MONEY, nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime, nullable=False, server_default=func.now())

    invoice = relationship("Invoice", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, invoice_id={self.invoice_id}, amount={self.amount})>"
