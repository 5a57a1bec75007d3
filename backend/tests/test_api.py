from datetime import date
from decimal import Decimal

from backend.app.db.models.core_types import Role


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_identity_headers_are_required(client, world):
    r = client.get("/v1/stock")
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHORIZED"

    r = client.get("/v1/stock", headers={"X-User-Id": "x", "X-User-Role": "pirate"})
    assert r.status_code == 401


def test_stock_listing_filters_by_warehouse(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 5)
    put_stock(world.tomatoes, world.south, 7)

    r = client.get(
        "/v1/stock",
        params={"warehouse_id": str(world.south.id)},
        headers=headers_for(world.actors[Role.client]),
    )

    assert r.status_code == 200
    data = r.json()["data"]
    assert len(data) == 1
    assert Decimal(data[0]["quantity"]) == Decimal("7")


def test_process_order_endpoint(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 10)

    r = client.post(
        "/v1/orders/process",
        json={
            "client_id": world.users[Role.client].id,
            "warehouse_id": str(world.north.id),
            "items": [{"product_id": str(world.tomatoes.id), "quantity": 4, "unit_price": "2.50"}],
            "delivery_option": True,
            "delivery_address": "3 rue Nationale, Lille",
            "payment_method": "direct",
        },
        headers=headers_for(world.actors[Role.client]),
    )

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Order processed successfully"
    assert body["data"]["order"]["status"] == "paid"
    assert Decimal(body["data"]["order"]["total_amount"]) == Decimal("10")
    assert body["data"]["delivery"]["status"] == "assigned"
    assert body["data"]["payment"]["status"] == "completed"

    order_id = body["data"]["order"]["id"]
    r = client.get(f"/v1/orders/{order_id}", headers=headers_for(world.actors[Role.client]))
    assert r.status_code == 200
    assert len(r.json()["data"]["items"]) == 1


def test_process_order_insufficient_stock_is_409(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 5)
    put_stock(world.potatoes, world.north, 2)

    r = client.post(
        "/v1/orders/process",
        json={
            "client_id": world.users[Role.client].id,
            "warehouse_id": str(world.north.id),
            "items": [
                {"product_id": str(world.tomatoes.id), "quantity": 5, "unit_price": 10},
                {"product_id": str(world.potatoes.id), "quantity": 3, "unit_price": 20},
            ],
            "payment_method": "credit",
        },
        headers=headers_for(world.actors[Role.client]),
    )

    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"]["product_id"] == str(world.potatoes.id)
    assert Decimal(body["details"]["available"]) == Decimal("2")
    assert Decimal(body["details"]["requested"]) == Decimal("3")


def test_process_order_rejects_empty_items(client, world, headers_for):
    r = client.post(
        "/v1/orders/process",
        json={
            "client_id": world.users[Role.client].id,
            "warehouse_id": str(world.north.id),
            "items": [],
            "payment_method": "direct",
        },
        headers=headers_for(world.actors[Role.client]),
    )

    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_quantities_finer_than_the_ledger_are_rejected(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 20)

    r = client.post(
        "/v1/orders/process",
        json={
            "client_id": world.users[Role.client].id,
            "warehouse_id": str(world.north.id),
            "items": [{"product_id": str(world.tomatoes.id), "quantity": "9.9996", "unit_price": "2.50"}],
            "payment_method": "direct",
        },
        headers=headers_for(world.actors[Role.client]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = client.post(
        "/v1/stock/management/adjust",
        json={
            "product_id": str(world.tomatoes.id),
            "warehouse_id": str(world.north.id),
            "quantity": "-0.0005",
        },
        headers=headers_for(world.actors[Role.stock_manager]),
    )
    assert r.status_code == 400

    r = client.post(
        "/v1/stock/management/adjust",
        json={
            "product_id": str(world.tomatoes.id),
            "warehouse_id": str(world.north.id),
            "quantity": "-0.125",
        },
        headers=headers_for(world.actors[Role.stock_manager]),
    )
    assert r.status_code == 200, r.text
    assert Decimal(r.json()["data"]["new_quantity"]) == Decimal("19.875")


def test_client_cannot_order_for_someone_else_over_http(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 20)

    r = client.post(
        "/v1/orders/process",
        json={
            "client_id": world.users[Role.admin].id,
            "warehouse_id": str(world.north.id),
            "items": [{"product_id": str(world.tomatoes.id), "quantity": 1, "unit_price": 1}],
            "payment_method": "credit",
        },
        headers=headers_for(world.actors[Role.client]),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"

def test_approvisionnement_workflow_over_http(client, world, headers_for):
    r = client.post(
        "/v1/approvisionnements",
        json={
            "product_id": str(world.tomatoes.id),
            "warehouse_id": str(world.north.id),
            "quantity": 50,
            "proposed_price": "1.80",
            "delivery_date": date.today().isoformat(),
        },
        headers=headers_for(world.actors[Role.supplier]),
    )
    assert r.status_code == 201, r.text
    appro_id = r.json()["data"]["id"]

    r = client.post(
        f"/v1/approvisionnements/{appro_id}/validate_bd",
        headers=headers_for(world.actors[Role.client]),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"

    r = client.post(
        "/v1/approvisionnements/workflow",
        json={"action": "validate_bd", "approvisionnement_id": appro_id, "notes": "OK qualité"},
        headers=headers_for(world.actors[Role.business_developer]),
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "validated_bd"

    r = client.post(
        f"/v1/approvisionnements/{appro_id}/receive_stock",
        headers=headers_for(world.actors[Role.stock_manager]),
    )
    assert r.status_code == 200
    assert r.json()["message"] == "Stock received successfully. Inventory updated and payment initiated."

    r = client.post(
        f"/v1/approvisionnements/{appro_id}/receive_stock",
        headers=headers_for(world.actors[Role.stock_manager]),
    )
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_STATUS"

    r = client.get("/v1/stock", headers=headers_for(world.actors[Role.stock_manager]))
    (line,) = r.json()["data"]
    assert Decimal(line["quantity"]) == Decimal("50")
    assert line["approvisionnement_id"] == appro_id


def test_unknown_workflow_action_is_rejected(client, world, headers_for):
    r = client.post(
        "/v1/approvisionnements/workflow",
        json={"action": "approve", "approvisionnement_id": str(world.north.id)},
        headers=headers_for(world.actors[Role.admin]),
    )
    assert r.status_code == 400


def test_stock_management_single_endpoint(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 10)
    sm = headers_for(world.actors[Role.stock_manager])

    r = client.post(
        "/v1/stock/management",
        json={
            "action": "adjust",
            "product_id": str(world.tomatoes.id),
            "warehouse_id": str(world.north.id),
            "quantity": -15,
        },
        headers=sm,
    )
    assert r.status_code == 409
    assert r.json()["code"] == "NEGATIVE_STOCK"

    r = client.post(
        "/v1/stock/management",
        json={
            "action": "transfer",
            "product_id": str(world.tomatoes.id),
            "from_warehouse_id": str(world.north.id),
            "to_warehouse_id": str(world.south.id),
            "quantity": 4,
        },
        headers=sm,
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert Decimal(data["source_stock"]["quantity"]) == Decimal("6")
    assert Decimal(data["destination_stock"]["quantity"]) == Decimal("4")

    r = client.post("/v1/stock/management", json={"action": "report"}, headers=sm)
    assert r.status_code == 200
    assert r.json()["data"]["total_items"] == 2


def test_stock_management_validates_per_action(client, world, headers_for):
    r = client.post(
        "/v1/stock/management",
        json={"action": "transfer", "product_id": str(world.tomatoes.id)},
        headers=headers_for(world.actors[Role.stock_manager]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_same_warehouse_transfer_is_invalid_transfer(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 10)

    r = client.post(
        "/v1/stock/management/transfer",
        json={
            "product_id": str(world.tomatoes.id),
            "from_warehouse_id": str(world.north.id),
            "to_warehouse_id": str(world.north.id),
            "quantity": 1,
        },
        headers=headers_for(world.actors[Role.admin]),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_TRANSFER"


def test_alert_and_report_routes(client, world, put_stock, headers_for):
    put_stock(world.tomatoes, world.north, 8)
    sm = headers_for(world.actors[Role.stock_manager])

    r = client.post(
        "/v1/stock/management/alert",
        json={"product_id": str(world.tomatoes.id), "threshold": 10},
        headers=sm,
    )
    assert r.status_code == 200
    assert r.json()["data"]["alert_sent"] is True
    assert r.json()["message"] == "Low stock alert sent"

    r = client.get("/v1/stock/management/report", headers=sm)
    assert r.status_code == 200
    report = r.json()["data"]
    assert report["generated_by"] == world.users[Role.stock_manager].id
    assert len(report["low_stock_items"]) == 1
    assert report["recent_movements"][0]["details"]["action"] == "low_stock_alert"

    r = client.get("/v1/stock/management/report", headers=headers_for(world.actors[Role.client]))
    assert r.status_code == 403
