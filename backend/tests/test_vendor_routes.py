"""
Vendor route tests: status codes for each error class and the trash triad.
"""


class TestVendorCrud:

    def test_create_and_get(self, client, auth_headers, vendor_payload):
        resp = client.post("/api/vendors", json=vendor_payload(pan_number="123456789"), headers=auth_headers)
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["pan_number"] == "123456789"
        assert created["vat_number"] is None
        assert created["bank_details"]["bank_name"] == "Everest Bank"

        resp = client.get(f"/api/vendors/{created['id']}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["email"] == created["email"]

    def test_validation_errors_are_listed(self, client, auth_headers):
        resp = client.post("/api/vendors", json={"name": "Only a name"}, headers=auth_headers)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Validation error"
        assert "email" in {e["field"] for e in body["errors"]}

    def test_duplicate_pan_is_conflict(self, client, auth_headers, vendor_payload):
        first = client.post("/api/vendors", json=vendor_payload(pan_number="123456789"), headers=auth_headers)
        assert first.status_code == 201

        resp = client.post("/api/vendors", json=vendor_payload(pan_number="123456789"), headers=auth_headers)
        assert resp.status_code == 409

    def test_missing_vendor_is_404(self, client, auth_headers):
        assert client.get("/api/vendors/999", headers=auth_headers).status_code == 404
        assert client.put("/api/vendors/999", json={"name": "x"}, headers=auth_headers).status_code == 404

    def test_update(self, client, auth_headers, vendor):
        resp = client.put(
            f"/api/vendors/{vendor.id}",
            json={"category": "manufacturer", "email": "NEW@Vendor.test"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["category"] == "manufacturer"
        assert body["email"] == "new@vendor.test"

    def test_list(self, client, auth_headers, make_vendor):
        make_vendor()
        make_vendor()
        resp = client.get("/api/vendors?limit=1", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 2
        assert len(body["items"]) == 1
        assert body["limit"] == 1


class TestVendorTrashRoutes:

    def test_trash_triad(self, client, auth_headers, vendor):
        resp = client.delete(f"/api/vendors/{vendor.id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["vendor"]["status"] == "deleted"

        trash = client.get("/api/vendors/trash", headers=auth_headers).get_json()
        assert [v["id"] for v in trash["items"]] == [vendor.id]

        resp = client.post(f"/api/vendors/{vendor.id}/restore", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.get_json()["vendor"]["status"] == "active"

        client.delete(f"/api/vendors/{vendor.id}", headers=auth_headers)
        resp = client.delete(f"/api/vendors/{vendor.id}/permanent", headers=auth_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/vendors/{vendor.id}", headers=auth_headers).status_code == 404

    def test_open_purchase_order_blocks_delete(self, client, auth_headers, vendor, make_po):
        make_po()
        resp = client.delete(f"/api/vendors/{vendor.id}", headers=auth_headers)
        assert resp.status_code == 400
        assert "open purchase order" in resp.get_json()["error"]

    def test_restore_live_vendor_is_400(self, client, auth_headers, vendor):
        resp = client.post(f"/api/vendors/{vendor.id}/restore", headers=auth_headers)
        assert resp.status_code == 400

    def test_vendor_purchase_orders(self, client, auth_headers, vendor, make_po):
        po = make_po()
        resp = client.get(f"/api/vendors/{vendor.id}/purchase-orders", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["items"][0]["order_number"] == po.order_number
