"""
Invoice arithmetic.

Pure functions over ``Decimal`` amounts rounded to cents:

* ``item.total = quantity * unit_price - item.discount``
* ``subtotal = sum(item.total)``
* ``total = subtotal - discount + tax``
* ``balance = total - sum(payments)``
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ..core.config import settings
from ..core.errors import InvalidStateError, ValidationError
from ..models.invoice import InvoiceStatus

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Current tax regime; kept as a field so totals stay general
DEFAULT_TAX = ZERO


def to_money(value) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


def compute_line(quantity: int, unit_price, discount=ZERO) -> LineAmounts:
    """Validate one line and compute its total."""
    if quantity is None or int(quantity) != quantity or quantity < 1:
        raise ValidationError("Item quantity must be a whole number of at least 1")
    unit_price = to_money(unit_price)
    discount = to_money(discount if discount is not None else ZERO)
    if unit_price < ZERO:
        raise ValidationError("Item unit price cannot be negative")
    if discount < ZERO:
        raise ValidationError("Item discount cannot be negative")

    gross = to_money(unit_price * quantity)
    if discount > gross:
        raise ValidationError(
            f"Item discount {discount} exceeds line amount {gross}"
        )
    return LineAmounts(
        quantity=int(quantity),
        unit_price=unit_price,
        discount=discount,
        total=gross - discount,
    )


def compute_totals(
    line_totals: Iterable[Decimal], discount=ZERO, tax=DEFAULT_TAX
) -> InvoiceTotals:
    subtotal = sum((to_money(t) for t in line_totals), ZERO)
    discount = to_money(discount if discount is not None else ZERO)
    tax = to_money(tax)
    if discount < ZERO:
        raise ValidationError("Invoice discount cannot be negative")
    if discount > subtotal:
        raise ValidationError(
            f"Invoice discount {discount} exceeds subtotal {subtotal}"
        )
    return InvoiceTotals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=subtotal - discount + tax,
    )


def format_invoice_number(sequence: int, prefix: str = None, width: int = None) -> str:
    prefix = prefix or settings.INVOICE_NUMBER_PREFIX
    width = width or settings.INVOICE_NUMBER_WIDTH
    return f"{prefix}-{sequence:0{width}d}"


def parse_invoice_number(number: Optional[str]) -> int:
    """Numeric suffix of ``PREFIX-NNNNNN``; 0 when absent or malformed."""
    if not number:
        return 0
    _, _, suffix = number.rpartition("-")
    return int(suffix) if suffix.isdigit() else 0


def derive_status(total: Decimal, total_paid: Decimal, current: InvoiceStatus) -> InvoiceStatus:
    """Status implied by the ledger balance.

    Depends only on the payment sum, so it is idempotent and independent
    of payment order. Cancelled invoices stay cancelled and an invoice
    with nothing owed is paid. Without payments the current status is kept.
    """
    if current == InvoiceStatus.CANCELLED:
        return current
    if total <= ZERO:
        return InvoiceStatus.PAID
    if total_paid <= ZERO:
        return current
    balance = total - total_paid
    if balance <= ZERO:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL


def ensure_payable(status: InvoiceStatus) -> None:
    if status == InvoiceStatus.CANCELLED:
        raise InvalidStateError("Cannot record a payment on a cancelled invoice")


def ensure_deletable(status: InvoiceStatus, payment_count: int) -> None:
    if payment_count > 0:
        raise InvalidStateError("Cannot delete an invoice with recorded payments")
    if status == InvoiceStatus.PAID:
        raise InvalidStateError("Cannot delete a paid invoice")
