# Overview: Pytest coverage for the JSON API and CLI through the Flask test client.

from sellytics.services import debt_service, sales_service


def _create_product(client, headers, **overrides):
    body = {
        "name": "Phone Z",
        "purchase_price_cents": 5000,
        "purchase_qty": 5,
        "selling_price_cents": 1000,
    }
    body.update(overrides)
    resp = client.post("/api/products", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["product"]


class TestStoreContext:
    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_missing_store_header(self, client, db_session):
        resp = client.get("/api/products")
        assert resp.status_code == 401

    def test_malformed_store_header(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Store-Id": "abc"})
        assert resp.status_code == 400

    def test_unknown_store(self, client, db_session):
        resp = client.get("/api/products", headers={"X-Store-Id": "9999"})
        assert resp.status_code == 404
        assert resp.get_json()["details"] == {"store_id": 9999}


class TestProductsAndInventory:
    def test_create_and_list(self, client, headers):
        product = _create_product(client, headers)
        assert product["unit_cost_cents"] == 1000

        items = client.get("/api/products", headers=headers).get_json()["items"]
        assert [p["id"] for p in items] == [product["id"]]

        inv = client.get(f"/api/inventory/{product['id']}", headers=headers).get_json()["inventory"]
        assert inv["available_qty"] == 5
        assert inv["quantity_sold"] == 0

    def test_create_requires_name(self, client, headers):
        resp = client.post("/api/products", json={"purchase_qty": 3}, headers=headers)
        assert resp.status_code == 400
        assert "name" in resp.get_json()["error"]

    def test_decimal_quantity_rejected(self, client, headers):
        resp = client.post("/api/products", json={"name": "X", "purchase_qty": "2.5"}, headers=headers)
        assert resp.status_code == 400

    def test_restock(self, client, headers):
        product = _create_product(client, headers)
        resp = client.post(
            f"/api/inventory/{product['id']}/restock",
            json={"added_qty": 3, "purchase_price_cents": 2400},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["inventory"]["available_qty"] == 8

    def test_restock_rejects_zero(self, client, headers):
        product = _create_product(client, headers)
        resp = client.post(f"/api/inventory/{product['id']}/restock", json={"added_qty": 0}, headers=headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, headers):
        low = _create_product(client, headers, name="Low", purchase_qty=2)
        _create_product(client, headers, name="Plenty", purchase_qty=40)
        items = client.get("/api/inventory/low-stock", headers=headers).get_json()["items"]
        assert [i["product_id"] for i in items] == [low["id"]]

    def test_seed(self, client, headers):
        _create_product(client, headers)
        resp = client.post("/api/inventory/seed", headers=headers)
        assert resp.status_code == 201
        assert resp.get_json()["count"] == 0


class TestSalesApi:
    def test_sale_lifecycle(self, client, headers):
        product = _create_product(client, headers)

        resp = client.post("/api/sales", json={
            "payment_method": "cash",
            "lines": [{"product_id": product["id"], "quantity": 3, "device_ids": ["A", "B"]}],
        }, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        sale = resp.get_json()["sale"]
        assert sale["total_amount_cents"] == 3000
        line = sale["lines"][0]
        assert line["device_ids"] == ["A", "B"]

        resp = client.post("/api/sales", json={
            "payment_method": "cash",
            "lines": [{"product_id": product["id"], "quantity": 5}],
        }, headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available"] == 2

        resp = client.patch(f"/api/sales/lines/{line['id']}", json={"quantity": 2}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["line"]["amount_cents"] == 2000

        found = client.get("/api/sales/lines/by-device/A", headers=headers).get_json()
        assert found["count"] == 1

        resp = client.delete(f"/api/sales/lines/{line['id']}", headers=headers)
        assert resp.status_code == 204
        inv = client.get(f"/api/inventory/{product['id']}", headers=headers).get_json()["inventory"]
        assert inv["available_qty"] == 5

        assert client.get(f"/api/sales/{sale['id']}", headers=headers).status_code == 404

    def test_duplicate_device_ids(self, client, headers):
        product = _create_product(client, headers)
        resp = client.post("/api/sales", json={
            "payment_method": "cash",
            "lines": [{"product_id": product["id"], "device_ids": "SN1,SN1"}],
        }, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["details"]["device_id"] == "SN1"

    def test_lines_required(self, client, headers):
        resp = client.post("/api/sales", json={"payment_method": "cash", "lines": []}, headers=headers)
        assert resp.status_code == 400

    def test_list_and_delete_group(self, client, headers):
        product = _create_product(client, headers)
        sale = client.post("/api/sales", json={
            "payment_method": "card",
            "request_id": "abc-1",
            "lines": [{"product_id": product["id"], "quantity": 1}],
        }, headers=headers).get_json()["sale"]

        items = client.get("/api/sales", headers=headers).get_json()["items"]
        assert [s["id"] for s in items] == [sale["id"]]

        assert client.delete(f"/api/sales/{sale['id']}", headers=headers).status_code == 204
        assert client.get("/api/sales", headers=headers).get_json()["count"] == 0
        assert client.delete(f"/api/sales/{sale['id']}", headers=headers).status_code == 404

        inv = client.get(f"/api/inventory/{product['id']}", headers=headers).get_json()["inventory"]
        assert inv["available_qty"] == 5


class TestDebtsApi:
    def test_debt_and_payments(self, client, headers):
        customer = client.post("/api/customers", json={"full_name": "Chi Eze"}, headers=headers)
        assert customer.status_code == 201
        customer_id = customer.get_json()["customer"]["id"]

        resp = client.post("/api/debts", json={
            "customer_id": customer_id,
            "amount_owed_cents": 10000,
            "deposit_cents": 4000,
        }, headers=headers)
        assert resp.status_code == 201
        debt = resp.get_json()["debt"]
        assert debt["remaining_cents"] == 6000
        assert debt["status"] == "partial"

        resp = client.post(f"/api/debts/{debt['id']}/payments", json={"amount_cents": 7000}, headers=headers)
        assert resp.status_code == 409
        assert resp.get_json()["details"]["remaining_cents"] == 6000

        resp = client.post(f"/api/debts/{debt['id']}/payments", json={"amount_cents": 6000}, headers=headers)
        assert resp.status_code == 201
        assert resp.get_json()["debt"]["status"] == "paid"

        detail = client.get(f"/api/debts/{debt['id']}", headers=headers).get_json()
        assert [p["amount_paid_cents"] for p in detail["payments"]] == [4000, 6000]

        assert client.get("/api/debts", headers=headers).get_json()["count"] == 0
        assert client.get("/api/debts?include_settled=1", headers=headers).get_json()["count"] == 1

    def test_debt_requires_fields(self, client, headers):
        resp = client.post("/api/debts", json={"customer_id": 1}, headers=headers)
        assert resp.status_code == 400

    def test_customers_listed_by_name(self, client, headers):
        for name in ("Zara", "Ade"):
            client.post("/api/customers", json={"full_name": name}, headers=headers)
        items = client.get("/api/customers", headers=headers).get_json()["items"]
        assert [c["full_name"] for c in items] == ["Ade", "Zara"]


class TestUnexpectedErrors:
    def test_sales_list_failure_is_logged_500(self, client, headers, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(sales_service, "list_sale_groups", broken)
        resp = client.get("/api/sales", headers=headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

    def test_debt_read_failure_is_logged_500(self, client, headers, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(debt_service, "get_debt_balance", broken)
        resp = client.get("/api/debts/1", headers=headers)
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

    def test_not_found_still_maps_to_404(self, client, headers):
        assert client.get("/api/sales/4040", headers=headers).status_code == 404
        assert client.get("/api/debts/4040", headers=headers).status_code == 404


class TestCli:
    def test_store_and_product_commands(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["stores", "create", "--name", "Kiosk"])
        assert result.exit_code == 0, result.output
        assert "Created store: Kiosk" in result.output

        result = runner.invoke(args=["stores", "list"])
        assert "Kiosk" in result.output

    def test_restock_unknown_product_fails(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["inventory", "restock", "--store-id", "1", "--product-id", "999", "--qty", "1"])
        assert result.exit_code != 0
        assert "not found" in result.output
