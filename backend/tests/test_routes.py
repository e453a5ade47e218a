"""
API tests through the Flask test client.
"""

import pytest


@pytest.fixture
def ring_via_api(client, seeded):
    resp = client.post("/api/products", json={
        "sku": "IGNORED",
        "category_id": "cat001",
        "primary_material": "gold",
        "purity_tier": "21k",
        "gross_weight_grams": "10",
        "wastage_percentage": "10",
        "labor_charge": "500",
    })
    assert resp.status_code == 201
    return resp.get_json()["product"]["sku"]


def test_health(client, seeded):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["details"]["categories"] == 17


def test_health_degraded_without_bootstrap(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "degraded"


def test_rates_round_trip(client, seeded):
    resp = client.put("/api/settings/rates", json={"rates": {"gold:22k": "212.50", "silver": 3.25}})
    assert resp.status_code == 200
    assert resp.get_json()["rates"]["gold:22k"] == "212.50"

    resp = client.get("/api/settings/rates")
    assert resp.status_code == 200
    rates = resp.get_json()["rates"]
    assert rates["gold:22k"] == "212.50"
    assert rates["silver"] == "3.25"
    assert rates["gold:21k"] == "200.00"


def test_invalid_rate_is_rejected(client, seeded):
    resp = client.put("/api/settings/rates", json={"rates": {"copper": "10"}})
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_full_sale_flow(client, ring_via_api):
    sku = ring_via_api
    assert sku == "RIN-000001"

    resp = client.post("/api/invoices", json={"items": [{"sku": sku}], "discount": "200"})
    assert resp.status_code == 201
    invoice = resp.get_json()["invoice"]
    assert invoice["id"] == "INV-000001"
    assert invoice["subtotal"] == "2700.00"
    assert invoice["grand_total"] == "2500.00"
    assert invoice["lines"][0]["sku"] == sku

    resp = client.get(f"/api/products/{sku}")
    assert resp.status_code == 200
    assert resp.get_json()["in_stock"] is False

    resp = client.post("/api/payments", json={"invoice_id": invoice["id"], "amount": "1000"})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["invoice"]["balance_due"] == "1500.00"
    assert body["payment_status"] == "PARTIAL"
    assert "lines" not in body["invoice"]

    resp = client.get(f"/api/payments/invoices/{invoice['id']}/summary")
    assert resp.get_json()["payment_status"] == "PARTIAL"

    resp = client.get("/api/ledger/customer/walk-in/balance")
    assert resp.status_code == 200
    assert resp.get_json()["cash"] == "1500.00"

    resp = client.post(f"/api/invoices/{invoice['id']}/reverse")
    assert resp.status_code == 200
    reversal = resp.get_json()
    assert reversal["reversed"] is True
    assert reversal["restored_skus"] == [sku]
    assert reversal["postings_deleted"] == 2

    assert client.get(f"/api/invoices/{invoice['id']}").status_code == 404
    resp = client.get(f"/api/products/{sku}")
    assert resp.get_json()["in_stock"] is True

    resp = client.get("/api/ledger/customer/walk-in")
    assert resp.get_json()["count"] == 0


def test_reversing_unknown_invoice_is_a_no_op(client, seeded):
    resp = client.post("/api/invoices/INV-424242/reverse")
    assert resp.status_code == 200
    assert resp.get_json() == {"invoice_id": "INV-424242", "reversed": False}


def test_sale_error_codes(client, ring_via_api):
    resp = client.post("/api/invoices", json={"items": []})
    assert resp.status_code == 400

    resp = client.post("/api/invoices", json={"items": [ring_via_api], "discount": "9999"})
    assert resp.status_code == 400

    resp = client.post("/api/invoices", json={"items": ["RIN-999999"]})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "item no longer available"

    resp = client.post("/api/invoices", data="not json", content_type="text/plain")
    assert resp.status_code == 400


def test_selling_a_sold_piece_conflicts(client, ring_via_api):
    assert client.post("/api/invoices", json={"items": [ring_via_api]}).status_code == 201

    resp = client.post("/api/invoices", json={"items": [ring_via_api]})
    assert resp.status_code == 409


def test_payment_error_codes(client, seeded):
    assert client.post("/api/payments", json={"amount": "10"}).status_code == 400
    assert client.post("/api/payments", json={"invoice_id": "INV-000404", "amount": "10"}).status_code == 409
    assert client.get("/api/payments/invoices/INV-000404/summary").status_code == 404


def test_products_listing_and_delete(client, ring_via_api):
    resp = client.get("/api/products?category_id=cat001&page=1&per_page=10")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["count"] == 1
    assert data["pagination"]["total"] == 1

    assert client.delete(f"/api/products/{ring_via_api}").status_code == 204
    assert client.delete(f"/api/products/{ring_via_api}").status_code == 404
    assert client.get(f"/api/products/{ring_via_api}").status_code == 404


def test_customer_and_artisan_routes(client, seeded):
    resp = client.post("/api/customers", json={"name": "Fatima", "phone": "0333"})
    assert resp.status_code == 201
    customer_id = resp.get_json()["customer"]["id"]

    resp = client.get("/api/customers?q=fati")
    assert [c["id"] for c in resp.get_json()["items"]] == [customer_id]

    resp = client.get(f"/api/customers/{customer_id}")
    assert resp.status_code == 200
    assert resp.get_json()["balance"]["cash"] == "0.00"

    assert client.post("/api/customers", json={"phone": "0333"}).status_code == 400

    resp = client.post("/api/artisans", json={"name": "Ustad Karim"})
    assert resp.status_code == 201
    artisan_id = resp.get_json()["artisan"]["id"]

    resp = client.post("/api/ledger/entries", json={
        "entity_kind": "artisan",
        "entity_id": str(artisan_id),
        "description": "Gold issued",
        "material_owed_by_entity": "25.5",
    })
    assert resp.status_code == 201

    resp = client.get(f"/api/ledger/artisan/{artisan_id}")
    assert resp.get_json()["balance"] == {"cash": "0.00", "material": "25.500"}

    resp = client.get("/api/ledger/summaries")
    assert [s["entity_name"] for s in resp.get_json()["items"]] == ["Ustad Karim"]


def test_order_flow(client, seeded):
    resp = client.post("/api/orders", json={
        "lines": [{
            "description": "Custom ring",
            "category_id": "cat001",
            "primary_material": "gold",
            "purity_tier": "21k",
            "gross_weight_grams": "10",
            "wastage_percentage": "10",
            "labor_charge": "500",
        }],
        "customer": {"name": "Nadia"},
        "advance_cash": "1000",
        "advance_material_value": "500",
    })
    assert resp.status_code == 201
    order = resp.get_json()["order"]
    assert order["status"] == "Pending"
    assert order["estimated_subtotal"] == "2700.00"

    resp = client.patch(f"/api/orders/{order['id']}/status", json={"status": "InProgress"})
    assert resp.status_code == 200
    assert resp.get_json()["order"]["status"] == "InProgress"

    resp = client.patch(f"/api/orders/{order['id']}/status", json={"status": "Completed"})
    assert resp.status_code == 400

    resp = client.post(f"/api/orders/{order['id']}/finalize", json={
        "final_measurements": [{"gross_weight_grams": "12"}],
        "extra_discount": "140",
    })
    assert resp.status_code == 201
    invoice = resp.get_json()["invoice"]
    assert invoice["grand_total"] == "3000.00"
    assert invoice["amount_paid"] == "1500.00"
    assert invoice["balance_due"] == "1500.00"

    resp = client.post(f"/api/orders/{order['id']}/finalize", json={})
    assert resp.status_code == 409

    resp = client.get("/api/orders?status=Completed")
    assert [o["id"] for o in resp.get_json()["items"]] == [order["id"]]


def test_non_object_customer_and_rate_overrides_are_rejected(client, ring_via_api):
    resp = client.post("/api/invoices", json={"items": [{"sku": ring_via_api}], "customer": "Ali"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "customer must be an object"

    resp = client.post("/api/invoices", json={"items": [{"sku": ring_via_api}], "rate_overrides": ["gold:21k"]})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "rate_overrides must be an object"

    resp = client.post("/api/orders", json={
        "lines": [{"description": "Custom ring", "gross_weight_grams": "10"}],
        "rate_overrides": ["gold:21k"],
    })
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "rate_overrides must be an object"

    # Nothing was sold
    assert client.get(f"/api/products/{ring_via_api}").get_json()["in_stock"] is True


def test_edit_product_route(client, ring_via_api):
    resp = client.patch(f"/api/products/{ring_via_api}", json={"labor_charge": "650", "sku": "RIN-123456"})
    assert resp.status_code == 200
    product = resp.get_json()["product"]
    assert product["sku"] == ring_via_api
    assert product["labor_charge"] == "650.00"

    assert client.patch(f"/api/products/{ring_via_api}", json={"gross_weight_grams": "-1"}).status_code == 400
    assert client.patch("/api/products/RIN-999999", json={"labor_charge": "1"}).status_code == 404

    assert client.post("/api/invoices", json={"items": [{"sku": ring_via_api}]}).status_code == 201
    assert client.patch(f"/api/products/{ring_via_api}", json={"labor_charge": "1"}).status_code == 409


def test_edit_order_route(client, seeded):
    resp = client.post("/api/orders", json={
        "lines": [{"description": "Custom ring", "gross_weight_grams": "10", "wastage_percentage": "10", "labor_charge": "500"}],
        "advance_cash": "1000",
    })
    order_id = resp.get_json()["order"]["id"]

    resp = client.patch(f"/api/orders/{order_id}", json={
        "lines": [{"description": "Custom ring", "gross_weight_grams": "12", "wastage_percentage": "10", "labor_charge": "500"}],
        "advance_cash": "1500",
    })
    assert resp.status_code == 200
    order = resp.get_json()["order"]
    assert order["estimated_subtotal"] == "3140.00"
    assert order["advance_cash"] == "1500.00"

    assert client.patch(f"/api/orders/{order_id}", json={"lines": "ring"}).status_code == 400
    assert client.patch("/api/orders/ORD-999999", json={"advance_cash": "1"}).status_code == 409

    assert client.patch(f"/api/orders/{order_id}/status", json={"status": "Cancelled"}).status_code == 200
    assert client.patch(f"/api/orders/{order_id}", json={"advance_cash": "1"}).status_code == 409
