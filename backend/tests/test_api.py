from datetime import timedelta
from decimal import Decimal

from backend.app.db.models.models_v1 import utcnow


def test_external_deduction_contract_is_camel_case(client, product):
    r = client.post(
        "/v1/external/billing/stock/deduct",
        json={"productCode": "SKU1", "quantity": 3, "notes": "invoice 1001"},
    )
    assert r.status_code == 200, r.text

    body = r.json()
    assert set(body) == {
        "productCode",
        "productName",
        "quantityDeducted",
        "previousStock",
        "currentStock",
        "sourceSystem",
        "timestamp",
        "movementId",
    }
    assert body["previousStock"] == 10
    assert body["currentStock"] == 7
    assert body["sourceSystem"] == "EXTERNAL_BILLING"


def test_external_deduction_insufficient_stock(client, product):
    r = client.post("/v1/external/billing/stock/deduct", json={"productCode": "SKU1", "quantity": 50})

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert body["details"]["available"] == 10
    assert body["details"]["requested"] == 50


def test_external_deduction_unknown_product(client):
    r = client.post("/v1/external/billing/stock/deduct", json={"productCode": "NOPE", "quantity": 1})

    assert r.status_code == 404
    assert r.json()["error"] == "PRODUCT_NOT_FOUND"


def test_product_stock_endpoints(client, product):
    r = client.post(f"/v1/products/{product.id}/stock/increase", json={"quantity": 4}, headers={"X-Actor": "alice"})
    assert r.status_code == 200, r.text
    assert r.json()["movement_type"] == "IN"
    assert r.json()["created_by"] == "alice"

    r = client.post(f"/v1/products/{product.id}/stock/adjust", json={"new_stock": 14})
    assert r.json() == {"adjusted": False, "movement": None}

    r = client.post(f"/v1/products/{product.id}/stock/adjust", json={"new_stock": 1})
    assert r.json()["adjusted"] is True

    r = client.get("/v1/products/low-stock")
    assert [p["code"] for p in r.json()] == ["SKU1"]

    r = client.get("/v1/products/by-code/SKU1")
    assert r.json()["current_stock"] == 1


def test_duplicate_supplier_is_a_conflict(client, supplier):
    r = client.post("/v1/suppliers", json={"name": "ACME Supplies"})

    assert r.status_code == 409
    assert r.json()["error"] == "DUPLICATE_SUPPLIER"


def test_purchase_order_flow(client, supplier, product):
    r = client.post(
        "/v1/purchase-orders",
        json={
            "order_number": "PO-100",
            "supplier_id": supplier.id,
            "order_date": "2026-03-01",
            "expected_date": "2026-03-15",
            "lines": [{"product_id": product.id, "quantity_ordered": 10, "unit_price": "5.00"}],
        },
    )
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "PENDING"
    assert Decimal(order["total_amount"]) == Decimal("50.00")
    detail_id = order["details"][0]["id"]

    # réception refusée tant que la commande n'est pas confirmée
    r = client.post(
        f"/v1/purchase-orders/{order['id']}/receive",
        json={"receivedDetails": [{"orderDetailId": detail_id, "quantityReceived": 6}]},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_ORDER_OPERATION"

    r = client.put(f"/v1/purchase-orders/{order['id']}/status", json={"status": "CONFIRMED"})
    assert r.status_code == 200
    assert r.json()["status"] == "CONFIRMED"

    r = client.post(
        f"/v1/purchase-orders/{order['id']}/receive",
        json={
            "receivedDetails": [{"orderDetailId": detail_id, "quantityReceived": 6}],
            "receivedDate": "2026-03-12",
        },
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["newStatus"] == "PARTIAL"
    assert body["orderFullyReceived"] is False
    assert body["receivedDate"] == "2026-03-12"
    assert body["receivedDetails"][0]["pending"] == 4

    r = client.get("/v1/purchase-orders/by-number/PO-100")
    assert r.json()["details"][0]["quantity_received"] == 6


def test_invalid_transition_error_payload(client, supplier, product):
    r = client.post(
        "/v1/purchase-orders",
        json={
            "order_number": "PO-200",
            "supplier_id": supplier.id,
            "lines": [{"product_id": product.id, "quantity_ordered": 1, "unit_price": "1.00"}],
        },
    )
    order_id = r.json()["id"]

    r = client.put(f"/v1/purchase-orders/{order_id}/status", json={"status": "COMPLETED"})

    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Invalid status transition: PENDING -> COMPLETED"
    assert body["details"] == {"current_status": "PENDING", "target_status": "COMPLETED"}


def test_missing_order_is_404(client):
    r = client.get("/v1/purchase-orders/999")
    assert r.status_code == 404
    assert r.json()["error"] == "ORDER_NOT_FOUND"


def test_stock_movement_listing(client, product):
    client.post(f"/v1/products/{product.id}/stock/decrease", json={"quantity": 2})

    r = client.get("/v1/stock-movements", params={"product_id": product.id})
    assert r.status_code == 200
    assert [m["movement_type"] for m in r.json()] == ["OUT"]


def test_patch_product_updates_thresholds(client, product):
    r = client.patch(f"/v1/products/{product.id}", json={"min_stock": 20, "max_stock": None})
    assert r.status_code == 200, r.text
    assert r.json()["min_stock"] == 20
    assert r.json()["max_stock"] is None
    assert r.json()["current_stock"] == 10

    r = client.get("/v1/products/low-stock")
    assert [p["code"] for p in r.json()] == ["SKU1"]

    r = client.patch(f"/v1/products/{product.id}", json={"min_stock": -1})
    assert r.status_code == 422

    r = client.patch("/v1/products/999", json={"name": "ghost"})
    assert r.status_code == 404


def test_movement_statistics_endpoints(client, product):
    client.post(f"/v1/products/{product.id}/stock/increase", json={"quantity": 3})
    client.post(f"/v1/products/{product.id}/stock/decrease", json={"quantity": 1, "reference_type": "SALE"})
    now = utcnow()
    window = {"start": (now - timedelta(hours=1)).isoformat(), "end": (now + timedelta(hours=1)).isoformat()}

    r = client.get("/v1/stock-movements/summary/types", params=window)
    assert r.status_code == 200, r.text
    assert [(s["movement_type"], s["reference_type"], s["total_quantity"]) for s in r.json()] == [
        ("IN", None, 3),
        ("OUT", "SALE", 1),
    ]

    r = client.get("/v1/stock-movements/summary/daily", params=window)
    assert r.status_code == 200, r.text
    [day] = r.json()
    assert (day["inbound"], day["outbound"], day["net"]) == (3, 1, 2)
