"""
Purchase order route tests.

Covers the full vendor -> order -> approval -> payment flow over HTTP and
the status code of every error class.
"""

from datetime import date, timedelta

from sqlalchemy.exc import OperationalError

from bizzflow.services import purchase_order_service


def _due(days: int = 7) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


class TestPurchaseOrderFlow:

    def test_end_to_end(self, client, auth_headers, vendor_payload):
        resp = client.post("/api/vendors", json=vendor_payload(pan_number="123456789"), headers=auth_headers)
        assert resp.status_code == 201
        vendor = resp.get_json()

        resp = client.post(
            "/api/purchase-orders",
            json={
                "vendor_id": vendor["id"],
                "items": [{"description": "Widget", "quantity": 10, "unit_price_cents": 5}],
                "due_date": _due(),
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        po = resp.get_json()
        assert po["subtotal_cents"] == 50
        assert po["total_cents"] == 50
        assert po["status"] == "draft"
        assert po["order_number"] == "PO-000001"
        assert po["vendor"]["name"] == vendor["name"]
        assert po["vendor"]["email"] == vendor["email"]

        resp = client.post(f"/api/purchase-orders/{po['id']}/submit", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "pending"

        resp = client.put(
            f"/api/purchase-orders/{po['id']}/status",
            json={"status": "approved", "note": "ok"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        approved = resp.get_json()
        assert approved["status"] == "approved"
        assert approved["approval_history"][0]["note"] == "ok"

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/payments",
            json={"amount_cents": 50, "method": "cash", "reference": "RCPT-1"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["payment_status"] == "paid"

        resp = client.post(
            f"/api/purchase-orders/{po['id']}/payments",
            json={"amount_cents": 1, "method": "cash", "reference": "RCPT-2"},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "amount_cents"

        ledger = client.get(f"/api/purchase-orders/{po['id']}/payments", headers=auth_headers).get_json()
        assert ledger["amount_paid_cents"] == 50
        assert ledger["remaining_cents"] == 0
        assert len(ledger["payments"]) == 1

        resp = client.post(f"/api/purchase-orders/{po['id']}/complete", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "completed"

    def test_update_and_trash(self, client, auth_headers, make_po):
        po = make_po()

        resp = client.put(
            f"/api/purchase-orders/{po.id}",
            json={"items": [{"description": "Widget", "quantity": 3, "unit_price_cents": 5}], "tax_cents": 2},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["total_cents"] == 17

        resp = client.delete(f"/api/purchase-orders/{po.id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["purchase_order"]["status"] == "deleted"

        trash = client.get("/api/purchase-orders/trash", headers=auth_headers).get_json()
        assert [item["id"] for item in trash["items"]] == [po.id]

        resp = client.post(f"/api/purchase-orders/{po.id}/restore", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["purchase_order"]["status"] == "draft"

        client.delete(f"/api/purchase-orders/{po.id}", headers=auth_headers)
        resp = client.delete(f"/api/purchase-orders/{po.id}/permanent", headers=auth_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/purchase-orders/{po.id}", headers=auth_headers).status_code == 404

    def test_list(self, client, auth_headers, vendor, make_po):
        make_po()
        make_po(status="pending")
        resp = client.get(f"/api/purchase-orders?status=pending&vendor_id={vendor.id}", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["items"][0]["vendor"]["id"] == vendor.id


class TestPurchaseOrderErrors:

    def test_missing_vendor_is_404(self, client, auth_headers, db_session):
        resp = client.post(
            "/api/purchase-orders",
            json={
                "vendor_id": 4040,
                "items": [{"description": "Widget", "quantity": 1, "unit_price_cents": 5}],
                "due_date": _due(),
            },
            headers=auth_headers,
        )
        assert resp.status_code == 404

    def test_validation_is_400_with_field_errors(self, client, auth_headers, vendor):
        resp = client.post(
            "/api/purchase-orders",
            json={"vendor_id": vendor.id, "items": []},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert {"items", "due_date"} <= fields

    def test_edit_of_approved_order_is_400(self, client, auth_headers, approved_po):
        resp = client.put(
            f"/api/purchase-orders/{approved_po.id}",
            json={"items": [{"description": "Widget", "quantity": 1, "unit_price_cents": 5}]},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_status_without_note_is_400(self, client, auth_headers, make_po):
        po = make_po(status="pending")
        resp = client.put(
            f"/api/purchase-orders/{po.id}/status", json={"status": "approved"}, headers=auth_headers
        )
        assert resp.status_code == 400

    def test_payment_on_draft_is_400(self, client, auth_headers, make_po):
        po = make_po()
        resp = client.post(
            f"/api/purchase-orders/{po.id}/payments",
            json={"amount_cents": 10, "method": "cash", "reference": "R"},
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_payment_with_non_string_date_is_400(self, client, auth_headers, approved_po):
        resp = client.post(
            f"/api/purchase-orders/{approved_po.id}/payments",
            json={"amount_cents": 10, "method": "cash", "reference": "R", "date": 123},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert [e["field"] for e in resp.get_json()["errors"]] == ["date"]

    def test_oversized_quantity_is_400(self, client, auth_headers, vendor):
        resp = client.post(
            "/api/purchase-orders",
            json={
                "vendor_id": vendor.id,
                "items": [{"description": "Widget", "quantity": 10**20, "unit_price_cents": 1}],
                "due_date": _due(),
            },
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert [e["field"] for e in resp.get_json()["errors"]] == ["items[0].quantity"]

    def test_delete_of_pending_order_is_400(self, client, auth_headers, make_po):
        po = make_po(status="pending")
        assert client.delete(f"/api/purchase-orders/{po.id}", headers=auth_headers).status_code == 400

    def test_unknown_order_is_404(self, client, auth_headers):
        assert client.get("/api/purchase-orders/9876", headers=auth_headers).status_code == 404
        assert client.post("/api/purchase-orders/9876/submit", headers=auth_headers).status_code == 404

    def test_database_failure_is_generic_500(self, client, auth_headers, monkeypatch):
        def _boom(po_id):
            raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))

        monkeypatch.setattr(purchase_order_service, "get_purchase_order", _boom)
        resp = client.get("/api/purchase-orders/1", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}
