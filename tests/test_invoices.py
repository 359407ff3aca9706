from decimal import Decimal

from .helpers import auth_headers

URL = "/api/v1/invoices"


def money(value):
    return Decimal(str(value))


def create_invoice(client, headers, patient_id, items=None, **extra):
    payload = {
        "patient_id": patient_id,
        "items": items if items is not None else [
            {"description": "Consultation", "quantity": 1, "unit_price": "300.00"},
        ],
    }
    payload.update(extra)
    return client.post(URL, json=payload, headers=headers)


class TestInvoiceCreation:
    """Test invoice creation and totals"""

    def test_create_invoice(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.patient)

        assert response.status_code == 201
        data = response.json()
        assert data["invoice_number"] == "INV-000001"
        assert data["status"] == "PENDING"
        assert data["issued_by_id"] == seed.receptionist
        assert money(data["subtotal"]) == Decimal("300")
        assert money(data["total"]) == Decimal("300")
        assert money(data["balance"]) == Decimal("300")
        assert money(data["total_paid"]) == Decimal("0")
        assert len(data["items"]) == 1
        assert data["payments"] == []

    def test_line_and_invoice_discounts(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.patient, items=[
            {"description": "Consultation", "quantity": 1, "unit_price": "300.00", "discount": "50.00"},
            {"description": "Blood test", "quantity": 2, "unit_price": "75.00"},
        ], discount="20.00")

        assert response.status_code == 201
        data = response.json()
        assert [money(i["total"]) for i in data["items"]] == [Decimal("250"), Decimal("150")]
        assert money(data["subtotal"]) == Decimal("400")
        assert money(data["line_discount_total"]) == Decimal("50")
        assert money(data["discount"]) == Decimal("20")
        assert money(data["tax"]) == Decimal("0")
        assert money(data["total"]) == Decimal("380")

    def test_subtotal_equals_sum_of_item_totals(self, client, seed, desk_headers):
        data = create_invoice(client, desk_headers, seed.patient, items=[
            {"description": "X-ray", "quantity": 3, "unit_price": "33.33", "discount": "0.99"},
            {"description": "Dressing", "quantity": 1, "unit_price": "12.50"},
        ]).json()

        items_total = sum(money(i["total"]) for i in data["items"])
        assert money(data["subtotal"]) == items_total
        assert money(data["total"]) == money(data["subtotal"]) - money(data["discount"]) + money(data["tax"])

    def test_numbers_increase_per_clinic(self, client, seed, admin_headers):
        other = auth_headers(seed.other_admin, seed.other_clinic)

        first = create_invoice(client, admin_headers, seed.patient).json()
        second = create_invoice(client, admin_headers, seed.patient).json()
        foreign = create_invoice(client, other, seed.other_patient).json()

        assert first["invoice_number"] == "INV-000001"
        assert second["invoice_number"] == "INV-000002"
        assert foreign["invoice_number"] == "INV-000001"

    def test_numbers_are_not_reused_after_delete(self, client, seed, admin_headers):
        first = create_invoice(client, admin_headers, seed.patient).json()
        client.delete(f"{URL}/{first['id']}", headers=admin_headers)

        second = create_invoice(client, admin_headers, seed.patient).json()
        assert second["invoice_number"] == "INV-000002"

    def test_discount_above_line_amount_is_rejected(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.patient, items=[
            {"description": "Consultation", "quantity": 1, "unit_price": "100.00", "discount": "100.01"},
        ])

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"
        assert client.get(URL, headers=desk_headers).json()["total"] == 0

    def test_empty_items_are_rejected(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.patient, items=[])
        assert response.status_code == 422

    def test_zero_quantity_is_rejected(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.patient, items=[
            {"description": "Consultation", "quantity": 0, "unit_price": "100.00"},
        ])
        assert response.status_code == 422

    def test_failed_creation_does_not_consume_a_number(self, client, seed, desk_headers):
        create_invoice(client, desk_headers, seed.other_patient)

        response = create_invoice(client, desk_headers, seed.patient)
        assert response.json()["invoice_number"] == "INV-000001"

    def test_patient_from_other_clinic_is_not_found(self, client, seed, desk_headers):
        response = create_invoice(client, desk_headers, seed.other_patient)
        assert response.status_code == 404


class TestInvoiceUpdates:
    """Test cancel, status rules and deletion"""

    def test_cancel_invoice(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()

        response = client.patch(f"{URL}/{invoice['id']}", json={"status": "CANCELLED"}, headers=desk_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    def test_payment_statuses_cannot_be_set(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()

        response = client.patch(f"{URL}/{invoice['id']}", json={"status": "PAID"}, headers=desk_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransitionError"

    def test_paid_invoice_cannot_be_cancelled(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()
        client.post(f"{URL}/{invoice['id']}/payments", json={"amount": "300.00", "method": "CARD"}, headers=desk_headers)

        response = client.patch(f"{URL}/{invoice['id']}", json={"status": "CANCELLED"}, headers=desk_headers)
        assert response.status_code == 409

    def test_update_notes_and_due_date(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()

        response = client.patch(f"{URL}/{invoice['id']}", json={
            "notes": "Insurance claim pending",
            "due_date": "2030-04-01T00:00:00",
        }, headers=desk_headers)

        assert response.status_code == 200
        assert response.json()["notes"] == "Insurance claim pending"
        assert response.json()["due_date"] == "2030-04-01T00:00:00"
        assert response.json()["status"] == "PENDING"

    def test_delete_unpaid_invoice(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()

        response = client.delete(f"{URL}/{invoice['id']}", headers=desk_headers)

        assert response.status_code == 204
        assert client.get(f"{URL}/{invoice['id']}", headers=desk_headers).status_code == 404

    def test_delete_with_payments_is_refused(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()
        client.post(f"{URL}/{invoice['id']}/payments", json={"amount": "50.00", "method": "CASH"}, headers=desk_headers)

        response = client.delete(f"{URL}/{invoice['id']}", headers=desk_headers)

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidStateError"
        assert client.get(f"{URL}/{invoice['id']}", headers=desk_headers).status_code == 200

    def test_delete_cancelled_invoice_without_payments(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()
        client.patch(f"{URL}/{invoice['id']}", json={"status": "CANCELLED"}, headers=desk_headers)

        assert client.delete(f"{URL}/{invoice['id']}", headers=desk_headers).status_code == 204


class TestInvoiceListing:
    """Test listing with summary"""

    def test_summary_covers_filtered_set(self, client, seed, desk_headers):
        first = create_invoice(client, desk_headers, seed.patient).json()
        create_invoice(client, desk_headers, seed.patient, items=[
            {"description": "Follow-up", "quantity": 1, "unit_price": "150.00"},
        ])
        client.post(f"{URL}/{first['id']}/payments", json={"amount": "100.00", "method": "CASH"}, headers=desk_headers)

        data = client.get(URL, params={"limit": 1}, headers=desk_headers).json()

        assert data["total"] == 2
        assert data["pages"] == 2
        assert len(data["invoices"]) == 1
        summary = data["summary"]
        assert summary["total_invoices"] == 2
        assert money(summary["total_amount"]) == Decimal("450")
        assert money(summary["total_paid"]) == Decimal("100")
        assert money(summary["total_pending"]) == Decimal("350")

    def test_filter_by_status(self, client, seed, desk_headers):
        first = create_invoice(client, desk_headers, seed.patient).json()
        create_invoice(client, desk_headers, seed.patient)
        client.post(f"{URL}/{first['id']}/payments", json={"amount": "10.00", "method": "CASH"}, headers=desk_headers)

        data = client.get(URL, params={"status": "PARTIAL"}, headers=desk_headers).json()

        assert [i["id"] for i in data["invoices"]] == [first["id"]]
        assert money(data["summary"]["total_paid"]) == Decimal("10")

    def test_end_date_is_exclusive(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()
        issued = invoice["issue_date"]

        before = client.get(URL, params={"end_date": issued}, headers=desk_headers).json()
        assert before["total"] == 0

        after = client.get(URL, params={"start_date": issued}, headers=desk_headers).json()
        assert [i["id"] for i in after["invoices"]] == [invoice["id"]]


class TestInvoiceAccess:
    """Test role and tenant restrictions"""

    def test_doctor_can_read_but_not_create(self, client, seed, desk_headers, doctor_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()

        assert client.get(f"{URL}/{invoice['id']}", headers=doctor_headers).status_code == 200
        assert create_invoice(client, doctor_headers, seed.patient).status_code == 403

    def test_nurse_cannot_read_invoices(self, client, seed):
        nurse = auth_headers(seed.nurse, seed.clinic)
        assert client.get(URL, headers=nurse).status_code == 403

    def test_other_clinic_gets_not_found(self, client, seed, desk_headers):
        invoice = create_invoice(client, desk_headers, seed.patient).json()
        other = auth_headers(seed.other_admin, seed.other_clinic)
        url = f"{URL}/{invoice['id']}"

        assert client.get(url, headers=other).status_code == 404
        assert client.delete(url, headers=other).status_code == 404
        assert client.post(f"{url}/payments", json={"amount": "10", "method": "CASH"}, headers=other).status_code == 404
        assert client.get(url, headers=desk_headers).status_code == 200
