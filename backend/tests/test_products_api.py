"""
Product catalogue HTTP tests.

Verifies create / update / delete, the stock adjustment endpoint, and that
stock cannot be edited through the generic update.
"""

import pytest


def _create(client, headers, **fields):
    body = {"name": "Sugar 1kg", "category": "Groceries", "price": "120.00", "stockQuantity": 20}
    body.update(fields)
    return client.post("/api/products", json=body, headers=headers)


class TestProductCrud:

    def test_create_and_fetch(self, client, manager_headers):
        resp = _create(client, manager_headers, minStock=4, costPrice="95.50")
        assert resp.status_code == 201
        product = resp.get_json()
        assert product["price"] == "120.00"
        assert product["cost_price"] == "95.50"
        assert product["stock_quantity"] == 20
        assert product["low_stock_threshold"] == 4
        assert product["is_low_stock"] is False

        fetched = client.get(f"/api/products/{product['id']}", headers=manager_headers)
        assert fetched.get_json()["name"] == "Sugar 1kg"

    def test_default_threshold_from_config(self, client, app, admin_headers):
        product = _create(client, admin_headers).get_json()
        assert product["low_stock_threshold"] == app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    @pytest.mark.parametrize("fields", [
        {"price": "-1"},
        {"stockQuantity": -5},
        {"name": ""},
        {"color": "blue"},
    ])
    def test_create_rejections(self, client, admin_headers, fields):
        assert _create(client, admin_headers, **fields).status_code == 400

    def test_missing_required(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "Salt"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_update_ignores_echoed_fields_but_not_stock(self, client, admin_headers, product):
        resp = client.put(
            f"/api/products/{product.id}",
            json={"id": product.id, "price": "110", "isLowStock": True},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["price"] == "110.00"

        resp = client.put(f"/api/products/{product.id}", json={"stock": 99}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_missing(self, client, admin_headers):
        resp = client.put("/api/products/missing", json={"price": "1"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_delete_blocked_by_sales(self, client, admin_headers, product):
        pid = product.id
        client.post(
            "/api/sales",
            json={"productId": pid, "quantity": 1, "paymentMethod": "cash"},
            headers=admin_headers,
        )

        assert client.get(f"/api/products/{pid}/can-delete", headers=admin_headers).get_json()["can_delete"] is False
        resp = client.delete(f"/api/products/{pid}", headers=admin_headers)
        assert resp.status_code == 409

    def test_delete_unsold_product(self, client, admin_headers, make_product):
        pid = make_product().id
        assert client.delete(f"/api/products/{pid}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{pid}", headers=admin_headers).status_code == 404


class TestStockEndpoint:

    def test_adjust(self, client, admin_headers, product):
        pid = product.id
        resp = client.post(f"/api/products/{pid}/stock", json={"delta": 5}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["stock_quantity"] == 15

        resp = client.post(f"/api/products/{pid}/stock", json={"delta": -16}, headers=admin_headers)
        assert resp.status_code == 409

    @pytest.mark.parametrize("body", [{}, {"delta": 0}, {"delta": "2.5"}])
    def test_bad_delta(self, client, admin_headers, product, body):
        resp = client.post(f"/api/products/{product.id}/stock", json=body, headers=admin_headers)
        assert resp.status_code == 400


class TestProductListing:

    def test_filters(self, client, cashier_headers, make_product):
        make_product(name="Rice 1kg", stock=2, low_stock_threshold=5, category="Grains")
        make_product(name="Rice 5kg", stock=50, category="Grains")
        make_product(name="Soap", stock=30, category="Household")

        def names(query):
            body = client.get(f"/api/products{query}", headers=cashier_headers).get_json()
            return [p["name"] for p in body["items"]]

        assert names("?category=Grains") == ["Rice 1kg", "Rice 5kg"]
        assert names("?search=rice") == ["Rice 1kg", "Rice 5kg"]
        assert names("?low_stock=true") == ["Rice 1kg"]

        low = client.get("/api/products/low-stock", headers=cashier_headers).get_json()
        assert low["count"] == 1

        categories = client.get("/api/products/categories", headers=cashier_headers).get_json()
        assert categories["items"] == ["Grains", "Household"]
