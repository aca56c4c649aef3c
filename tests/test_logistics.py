from showroom.application.order_service import OrderService
from showroom.application.schemas import ResultKind
from showroom.application.workflow import OrderWorkflow
from showroom.domain.models import Order


def place_order(db, make_item, order_payload, principal):
    chair = make_item(stock=5)
    result = OrderWorkflow(db).create_order(order_payload((chair.id, 1)), principal)
    return db.get(Order, result.order_id)


def test_carrier_event_is_appended_to_history(db, make_item, order_payload, principal):
    order = place_order(db, make_item, order_payload, principal)

    result = OrderService(db).update_shipment_status(
        order.id, {"status": "Picked Up", "location": "Leeds depot", "notes": "Two boxes"}
    )

    assert result.success
    assert result.message == "Shipment status updated successfully."
    db.refresh(order)
    event = order.shipment.history[-1]
    assert event["status"] == "Picked Up"
    assert event["location"] == "Leeds depot"
    assert event["notes"] == "Two boxes"
    assert "timestamp" in event


def test_location_defaults_when_missing(db, make_item, order_payload, principal):
    order = place_order(db, make_item, order_payload, principal)

    OrderService(db).update_shipment_status(order.id, {"status": "Delivered"})

    db.refresh(order)
    assert order.shipment.history[-1]["location"] == "Update Recorded"
    assert order.shipment.actual_delivery is not None
    # the order's own status is not driven by the carrier
    assert order.status == "Processing"


def test_cancelled_order_shipment_is_frozen(db, make_item, order_payload, principal):
    order = place_order(db, make_item, order_payload, principal)
    OrderWorkflow(db).cancel_order(order.id, principal)

    result = OrderService(db).update_shipment_status(order.id, {"status": "In Transit"})

    assert not result.success
    assert result.kind == ResultKind.BUSINESS


def test_unknown_shipment(db):
    result = OrderService(db).update_shipment_status("nope", {"status": "In Transit"})
    assert result.kind == ResultKind.NOT_FOUND
    assert result.message == "Shipment for order nope not found."


def test_invalid_shipment_status(db, make_item, order_payload, principal):
    order = place_order(db, make_item, order_payload, principal)
    result = OrderService(db).update_shipment_status(order.id, {"status": "Teleported"})
    assert result.kind == ResultKind.VALIDATION
    assert "status" in result.errors


class TestLogisticsApi:
    def test_list_and_filter(self, client, auth_headers, db, make_item, order_payload, principal):
        first = place_order(db, make_item, order_payload, principal)
        second = place_order(db, make_item, order_payload, principal)
        OrderWorkflow(db).update_status(second.id, {"status": "Shipped"}, principal)

        resp = client.get("/logistics/", headers=auth_headers)
        assert resp.status_code == 200
        assert {s["order_id"] for s in resp.json()} == {first.id, second.id}

        resp = client.get("/logistics/", params={"status": "In Transit"}, headers=auth_headers)
        assert [s["order_id"] for s in resp.json()] == [second.id]

    def test_status_update_refreshes_cached_shipment(self, client, auth_headers, db, make_item, order_payload, principal):
        order = place_order(db, make_item, order_payload, principal)
        assert client.get(f"/logistics/{order.id}", headers=auth_headers).json()["status"] == "Processing"

        resp = client.post(
            f"/logistics/{order.id}/status",
            json={"status": "Out for Delivery", "location": "Local hub"},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["shipment_id"] == order.shipment.id
        assert client.get(f"/logistics/{order.id}", headers=auth_headers).json()["status"] == "Out for Delivery"

    def test_unknown_shipment_is_404(self, client, auth_headers):
        assert client.get("/logistics/nope", headers=auth_headers).status_code == 404


def test_dashboard_endpoint(client, auth_headers, db, make_item, order_payload, principal):
    place_order(db, make_item, order_payload, principal)

    resp = client.get("/dashboard", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total_items"] == 1
    assert body["open_orders"] == 1
    assert body["in_transit_shipments"] == 0
    assert body["low_stock_items"][0]["stock"] == 4
