from decimal import Decimal
from itertools import permutations

import pytest

from clinic_ledger.core.errors import InvalidStateError, ValidationError
from clinic_ledger.models.invoice import InvoiceStatus
from clinic_ledger.services.ledger import (
    compute_line, compute_totals, derive_status, ensure_deletable, ensure_payable,
    format_invoice_number, parse_invoice_number,
)

D = Decimal


class TestLineTotals:

    def test_line_total_is_quantity_times_price_minus_discount(self):
        line = compute_line(3, D("120.50"), D("10"))
        assert line.total == D("351.50")

    def test_full_discount_line_totals_zero(self):
        line = compute_line(2, D("50"), D("100"))
        assert line.total == D("0.00")

    def test_discount_exceeding_line_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_line(1, D("50"), D("50.01"))

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_below_one_is_rejected(self, quantity):
        with pytest.raises(ValidationError):
            compute_line(quantity, D("10"))

    def test_negative_price_or_discount_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_line(1, D("-1"))
        with pytest.raises(ValidationError):
            compute_line(1, D("10"), D("-1"))

    def test_free_line_is_allowed(self):
        assert compute_line(1, D("0")).total == D("0")


class TestInvoiceTotals:

    def test_totals_balance_for_mixed_lines(self):
        lines = [
            compute_line(1, D("300"), D("0")),
            compute_line(2, D("75.25"), D("10.50")),
            compute_line(1, D("40"), D("40")),
        ]
        totals = compute_totals(line.total for line in lines)

        assert totals.subtotal == sum(line.total for line in lines)
        assert totals.total == totals.subtotal - totals.discount + totals.tax
        assert totals.subtotal == D("440.00")
        assert totals.tax == D("0")

    def test_invoice_level_discount(self):
        totals = compute_totals([D("200"), D("100")], discount=D("30"))
        assert totals.subtotal == D("300")
        assert totals.total == D("270")

    def test_invoice_discount_above_subtotal_is_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals([D("20")], discount=D("25"))


class TestInvoiceNumbers:

    def test_format_is_zero_padded(self):
        assert format_invoice_number(1) == "INV-000001"
        assert format_invoice_number(42) == "INV-000042"

    def test_parse_round_trips_suffix(self):
        assert parse_invoice_number("INV-000417") == 417

    @pytest.mark.parametrize("value", [None, "", "INV-", "garbage"])
    def test_parse_missing_or_malformed_is_zero(self, value):
        assert parse_invoice_number(value) == 0


class TestStatusDerivation:

    def test_full_payment_is_paid(self):
        assert derive_status(D("450"), D("450"), InvoiceStatus.PENDING) == InvoiceStatus.PAID

    def test_partial_payment_is_partial(self):
        assert derive_status(D("450"), D("200"), InvoiceStatus.PENDING) == InvoiceStatus.PARTIAL

    def test_no_payment_keeps_current_status(self):
        assert derive_status(D("450"), D("0"), InvoiceStatus.PENDING) == InvoiceStatus.PENDING

    def test_cancelled_stays_cancelled(self):
        assert derive_status(D("450"), D("450"), InvoiceStatus.CANCELLED) == InvoiceStatus.CANCELLED

    def test_zero_total_is_paid(self):
        assert derive_status(D("0"), D("0"), InvoiceStatus.PENDING) == InvoiceStatus.PAID

    def test_zero_total_cancelled_stays_cancelled(self):
        assert derive_status(D("0"), D("0"), InvoiceStatus.CANCELLED) == InvoiceStatus.CANCELLED

    def test_derivation_is_idempotent(self):
        first = derive_status(D("450"), D("200"), InvoiceStatus.PENDING)
        assert derive_status(D("450"), D("200"), first) == first

    def test_payment_order_does_not_matter(self):
        amounts = [D("10"), D("20"), D("15")]
        results = set()
        for order in permutations(amounts):
            status, paid = InvoiceStatus.PENDING, D("0")
            for amount in order:
                paid += amount
                status = derive_status(D("60"), paid, status)
            results.add(status)
        assert results == {InvoiceStatus.PARTIAL}


class TestGuards:

    def test_delete_refused_with_payments(self):
        with pytest.raises(InvalidStateError):
            ensure_deletable(InvoiceStatus.PARTIAL, 1)

    def test_delete_refused_when_paid_even_without_payments(self):
        with pytest.raises(InvalidStateError):
            ensure_deletable(InvoiceStatus.PAID, 0)

    @pytest.mark.parametrize("status", [InvoiceStatus.PENDING, InvoiceStatus.CANCELLED])
    def test_delete_allowed_without_payments(self, status):
        ensure_deletable(status, 0)

    def test_cancelled_invoice_is_not_payable(self):
        with pytest.raises(InvalidStateError):
            ensure_payable(InvoiceStatus.CANCELLED)
