import re
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from showroom.application.order_service import OrderService
from showroom.application.schemas import ResultKind
from showroom.application.workflow import OrderWorkflow, order_paths
from showroom.domain.models import InventoryItem, Order
from showroom.infrastructure.repository import InventoryRepository, OrderRepository


class RecordingRevalidator:
    def __init__(self):
        self.paths = []

    def revalidate(self, paths):
        self.paths.extend(paths)


def stock_of(db, item):
    db.refresh(item)
    return item.stock


def order_count(db):
    return db.scalar(select(func.count()).select_from(Order))


class TestCreateOrder:
    def test_reserves_stock_and_totals_lines(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5, price="120.00")
        lamp = make_item(stock=3, price="45.50")
        revalidator = RecordingRevalidator()

        result = OrderWorkflow(db, revalidator).create_order(
            order_payload((chair.id, 2), (lamp.id, 1)), principal
        )

        assert result.success, result.message
        assert result.order_id and result.shipment_id
        assert stock_of(db, chair) == 3
        assert stock_of(db, lamp) == 2

        order = db.get(Order, result.order_id)
        assert order.total_amount == Decimal("285.50")
        assert order.status == "Processing"
        assert order.payment_status == "Pending"
        assert order.created_by == principal.user_id
        assert order.order_number.startswith("ORD-")
        assert result.message == f"Order {order.order_number} created successfully."
        assert [line.quantity for line in order.lines] == [2, 1]
        assert order.lines[0].unit_price == Decimal("120.00")
        assert order.lines[0].sku == chair.sku

        shipment = order.shipment
        assert shipment.id == result.shipment_id
        assert shipment.status == "Processing"
        assert shipment.carrier == "TBD"
        assert shipment.tracking_number == "Pending"
        assert shipment.history[0]["status"] == "Processing"
        assert shipment.history[0]["location"] == "Showroom"

        assert f"/orders/{order.id}" in revalidator.paths
        assert f"/inventory/{chair.id}" in revalidator.paths
        assert "/" in revalidator.paths

    def test_insufficient_stock_writes_nothing(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        lamp = make_item(stock=1, name="Brass Lamp")

        result = OrderWorkflow(db).create_order(order_payload((chair.id, 2), (lamp.id, 3)), principal)

        assert not result.success
        assert result.kind == ResultKind.BUSINESS
        assert "Insufficient stock for Brass Lamp" in result.message
        assert "1 available, 3 requested" in result.message
        assert result.errors == {"items": [result.message]}
        assert stock_of(db, chair) == 5
        assert stock_of(db, lamp) == 1
        assert order_count(db) == 0

    def test_unknown_item_is_refused(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)

        result = OrderWorkflow(db).create_order(order_payload((chair.id, 1), ("missing", 1)), principal)

        assert not result.success
        assert result.message == "Inventory item with ID missing not found."
        assert stock_of(db, chair) == 5
        assert order_count(db) == 0

    def test_repeated_lines_are_checked_together(self, db, make_item, order_payload, principal):
        chair = make_item(stock=3)
        workflow = OrderWorkflow(db)

        refused = workflow.create_order(order_payload((chair.id, 2), (chair.id, 2)), principal)
        assert not refused.success
        assert stock_of(db, chair) == 3

        placed = workflow.create_order(order_payload((chair.id, 1), (chair.id, 2)), principal)
        assert placed.success
        assert stock_of(db, chair) == 0
        order = db.get(Order, placed.order_id)
        assert len(order.lines) == 1
        assert order.lines[0].quantity == 3

    def test_validation_errors_are_keyed_by_field(self, db, make_item, principal):
        chair = make_item(stock=5)
        payload = {
            "customer": {"name": "", "email": "not-an-email", "address": "Somewhere"},
            "items": [{"item_id": chair.id, "quantity": 0}],
        }

        result = OrderWorkflow(db).create_order(payload, principal)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert result.message == "Validation failed. Please check the form fields."
        assert "customer.name" in result.errors
        assert "customer.email" in result.errors
        assert "items.0.quantity" in result.errors
        assert stock_of(db, chair) == 5

    def test_empty_order_is_rejected(self, db, principal, order_payload):
        result = OrderWorkflow(db).create_order(order_payload(), principal)
        assert not result.success
        assert "items" in result.errors

    def test_new_order_cannot_start_shipped(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        result = OrderWorkflow(db).create_order(order_payload((chair.id, 1), status="Shipped"), principal)
        assert not result.success
        assert result.errors["status"] == ["New orders start as Processing or Pending Payment."]

    def test_idempotency_key_replays_first_order(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        workflow = OrderWorkflow(db)
        payload = order_payload((chair.id, 2), idempotency_key="checkout-42")

        first = workflow.create_order(payload, principal)
        second = workflow.create_order(payload, principal)

        assert first.success and second.success
        assert second.order_id == first.order_id
        assert second.shipment_id == first.shipment_id
        assert stock_of(db, chair) == 3
        assert order_count(db) == 1

    def test_losing_a_key_race_replays_the_winner(self, db, session_factory, make_item, order_payload, principal):
        class KeyLookupMissesOnce(OrderRepository):
            """Answers the first key lookup before the competing order is visible."""
            missed = False

            def get_by_idempotency_key(self, key):
                if not self.missed:
                    self.missed = True
                    return None
                return super().get_by_idempotency_key(key)

        chair = make_item(stock=5)
        payload = order_payload((chair.id, 1), idempotency_key="checkout-7")
        competing = session_factory()
        try:
            winner = OrderWorkflow(competing).create_order(payload, principal)
        finally:
            competing.close()
        assert winner.success

        result = OrderWorkflow(db, orders=KeyLookupMissesOnce(db)).create_order(payload, principal)

        assert result.success
        assert result.order_id == winner.order_id
        assert result.shipment_id == winner.shipment_id
        assert stock_of(db, chair) == 4
        assert order_count(db) == 1

    def test_order_numbers_are_unique_per_order(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        workflow = OrderWorkflow(db)
        numbers = [
            db.get(Order, workflow.create_order(order_payload((chair.id, 1)), principal).order_id).order_number
            for _ in range(3)
        ]
        assert len(set(numbers)) == 3
        for number in numbers:
            assert re.fullmatch(r"ORD-\d{4}-[0-9A-F]{12}", number)

    def test_lost_race_on_decrement_writes_nothing(self, db, make_item, order_payload, principal):
        class RacingInventory(InventoryRepository):
            def decrement_stock(self, item, quantity):
                return False

        chair = make_item(stock=5)
        result = OrderWorkflow(db, inventory=RacingInventory(db)).create_order(
            order_payload((chair.id, 1)), principal
        )

        assert not result.success
        assert result.kind == ResultKind.BUSINESS
        assert "changed while placing the order" in result.message
        assert stock_of(db, chair) == 5
        assert order_count(db) == 0

    def test_failed_commit_rolls_back(self, db, make_item, order_payload, principal, monkeypatch):
        chair = make_item(stock=5)

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(db, "commit", failing_commit)
        result = OrderWorkflow(db).create_order(order_payload((chair.id, 2)), principal)
        monkeypatch.undo()

        assert not result.success
        assert result.kind == ResultKind.INFRASTRUCTURE
        assert result.message == "Failed to create order. Please try again."
        assert stock_of(db, chair) == 5
        assert order_count(db) == 0


class TestCancelOrder:
    def place(self, db, principal, order_payload, *lines):
        result = OrderWorkflow(db).create_order(order_payload(*lines), principal)
        assert result.success, result.message
        return db.get(Order, result.order_id)

    def test_restocks_and_refunds(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        lamp = make_item(stock=4)
        order = self.place(db, principal, order_payload, (chair.id, 2), (lamp.id, 1))
        revalidator = RecordingRevalidator()

        result = OrderWorkflow(db, revalidator).cancel_order(order.id, principal)

        assert result.success
        assert result.message == f"Order {order.order_number} cancelled successfully. 2 line(s) restocked."
        assert stock_of(db, chair) == 5
        assert stock_of(db, lamp) == 4
        db.refresh(order)
        assert order.status == "Cancelled"
        assert order.payment_status == "Refunded"
        assert order.shipment.status == "Cancelled"
        assert order.shipment.history[-1]["status"] == "Cancelled"
        assert f"/inventory/{lamp.id}" in revalidator.paths

    def test_cancelling_twice_does_not_restock_twice(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        order = self.place(db, principal, order_payload, (chair.id, 2))
        workflow = OrderWorkflow(db)

        assert workflow.cancel_order(order.id, principal).success
        again = workflow.cancel_order(order.id, principal)

        assert again.success
        assert again.message == f"Order {order.order_number} is already cancelled."
        assert stock_of(db, chair) == 5

    def test_shipped_and_delivered_orders_stay_put(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        workflow = OrderWorkflow(db)
        for status in ("Shipped", "Delivered"):
            order = self.place(db, principal, order_payload, (chair.id, 1))
            assert workflow.update_status(order.id, {"status": status}, principal).success
            before = stock_of(db, chair)

            result = workflow.cancel_order(order.id, principal)

            assert not result.success
            assert result.kind == ResultKind.BUSINESS
            assert result.message == f"Cannot cancel order that is already {status}."
            assert stock_of(db, chair) == before
            db.refresh(order)
            assert order.status == status

    def test_deleted_item_is_skipped(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        lamp = make_item(stock=5)
        order = self.place(db, principal, order_payload, (chair.id, 1), (lamp.id, 2))
        db.delete(lamp)
        db.commit()

        result = OrderWorkflow(db).cancel_order(order.id, principal)

        assert result.success
        assert "1 line(s) restocked, 1 skipped" in result.message
        assert stock_of(db, chair) == 5
        db.refresh(order)
        assert order.status == "Cancelled"

    def test_shipment_on_the_road_is_left_alone(self, db, make_item, order_payload, principal):
        chair = make_item(stock=5)
        order = self.place(db, principal, order_payload, (chair.id, 2))
        assert OrderService(db).update_shipment_status(order.id, {"status": "Picked Up"}).success

        result = OrderWorkflow(db).cancel_order(order.id, principal)

        assert result.success
        assert stock_of(db, chair) == 5
        db.refresh(order)
        assert order.status == "Cancelled"
        assert order.shipment.status == "Picked Up"
        assert order.shipment.history[-1]["status"] == "Picked Up"

    def test_unknown_order(self, db, principal):
        result = OrderWorkflow(db).cancel_order("nope", principal)
        assert not result.success
        assert result.kind == ResultKind.NOT_FOUND
        assert result.message == "Order nope not found."

    def test_blank_order_id(self, db, principal):
        result = OrderWorkflow(db).cancel_order("", principal)
        assert not result.success
        assert result.kind == ResultKind.VALIDATION


class TestUpdateStatus:
    def place(self, db, principal, order_payload, make_item):
        chair = make_item(stock=5)
        result = OrderWorkflow(db).create_order(order_payload((chair.id, 2)), principal)
        return chair, db.get(Order, result.order_id)

    def test_shipped_moves_tracking_in_transit(self, db, make_item, order_payload, principal):
        _, order = self.place(db, principal, order_payload, make_item)

        result = OrderWorkflow(db).update_status(order.id, {"status": "Shipped", "payment_status": "Paid"}, principal)

        assert result.success
        assert result.message == f"Order {order.order_number} status updated to Shipped."
        db.refresh(order)
        assert order.status == "Shipped"
        assert order.payment_status == "Paid"
        assert order.shipment.status == "In Transit"
        assert order.shipment.history[-1]["status"] == "In Transit"

    def test_delivered_stamps_actual_delivery(self, db, make_item, order_payload, principal):
        _, order = self.place(db, principal, order_payload, make_item)

        assert OrderWorkflow(db).update_status(order.id, {"status": "Delivered"}, principal).success

        db.refresh(order)
        assert order.shipment.status == "Delivered"
        assert order.shipment.actual_delivery is not None

    def test_pending_payment_leaves_tracking_alone(self, db, make_item, order_payload, principal):
        _, order = self.place(db, principal, order_payload, make_item)
        history_length = len(order.shipment.history)

        assert OrderWorkflow(db).update_status(order.id, {"status": "Pending Payment"}, principal).success

        db.refresh(order)
        assert order.status == "Pending Payment"
        assert order.shipment.status == "Processing"
        assert len(order.shipment.history) == history_length

    def test_cancelled_goes_through_restock(self, db, make_item, order_payload, principal):
        chair, order = self.place(db, principal, order_payload, make_item)

        result = OrderWorkflow(db).update_status(order.id, {"status": "Cancelled"}, principal)

        assert result.success
        assert stock_of(db, chair) == 5
        db.refresh(order)
        assert order.status == "Cancelled"
        assert order.payment_status == "Refunded"

    def test_cancelled_order_status_is_final(self, db, make_item, order_payload, principal):
        _, order = self.place(db, principal, order_payload, make_item)
        workflow = OrderWorkflow(db)
        workflow.cancel_order(order.id, principal)

        result = workflow.update_status(order.id, {"status": "Processing"}, principal)

        assert not result.success
        assert result.kind == ResultKind.BUSINESS
        assert "status" in result.errors
        db.refresh(order)
        assert order.status == "Cancelled"

    def test_unknown_status_is_a_validation_error(self, db, make_item, order_payload, principal):
        _, order = self.place(db, principal, order_payload, make_item)
        result = OrderWorkflow(db).update_status(order.id, {"status": "Lost"}, principal)
        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert "status" in result.errors

    def test_refunding_an_open_order_restocks(self, db, make_item, order_payload, principal):
        chair, order = self.place(db, principal, order_payload, make_item)
        workflow = OrderWorkflow(db)
        assert stock_of(db, chair) == 3

        result = workflow.update_status(order.id, {"status": "Refunded"}, principal)

        assert result.success
        assert stock_of(db, chair) == 5
        db.refresh(order)
        assert order.status == "Refunded"
        assert order.payment_status == "Refunded"
        assert order.shipment.status == "Cancelled"

        assert not workflow.cancel_order(order.id, principal).success
        assert stock_of(db, chair) == 5

    def test_refunding_a_shipped_order_keeps_stock(self, db, make_item, order_payload, principal):
        chair, order = self.place(db, principal, order_payload, make_item)
        workflow = OrderWorkflow(db)
        workflow.update_status(order.id, {"status": "Shipped", "payment_status": "Paid"}, principal)

        assert workflow.update_status(order.id, {"status": "Refunded"}, principal).success

        assert stock_of(db, chair) == 3
        db.refresh(order)
        assert order.status == "Refunded"
        assert order.payment_status == "Refunded"
        assert order.shipment.status == "In Transit"

    def test_fulfilment_does_not_move_backwards(self, db, make_item, order_payload, principal):
        chair, order = self.place(db, principal, order_payload, make_item)
        workflow = OrderWorkflow(db)
        workflow.update_status(order.id, {"status": "Shipped"}, principal)

        result = workflow.update_status(order.id, {"status": "Processing"}, principal)

        assert not result.success
        assert result.kind == ResultKind.BUSINESS
        assert result.message == "Order is Shipped; it cannot move back to Processing."
        assert not workflow.cancel_order(order.id, principal).success
        assert stock_of(db, chair) == 3

        workflow.update_status(order.id, {"status": "Delivered"}, principal)
        assert not workflow.update_status(order.id, {"status": "Shipped"}, principal).success
        db.refresh(order)
        assert order.status == "Delivered"

    def test_cancel_with_conflicting_payment_is_rejected(self, db, make_item, order_payload, principal):
        chair, order = self.place(db, principal, order_payload, make_item)
        workflow = OrderWorkflow(db)

        result = workflow.update_status(order.id, {"status": "Cancelled", "payment_status": "Paid"}, principal)

        assert not result.success
        assert result.kind == ResultKind.VALIDATION
        assert "payment_status" in result.errors
        db.refresh(order)
        assert order.status == "Processing"
        assert stock_of(db, chair) == 3

        assert workflow.update_status(order.id, {"status": "Cancelled", "payment_status": "Refunded"}, principal).success
        assert stock_of(db, chair) == 5

    def test_unknown_order(self, db, principal):
        result = OrderWorkflow(db).update_status("nope", {"status": "Shipped"}, principal)
        assert result.kind == ResultKind.NOT_FOUND


def test_order_paths_cover_touched_items():
    paths = order_paths("o1", ["a", "b"])
    assert paths[:5] == ["/orders", "/orders/o1", "/logistics", "/logistics/o1", "/"]
    assert "/inventory" in paths
    assert "/inventory/a" in paths and "/inventory/b" in paths
    assert "/inventory" not in order_paths("o1")


def test_stock_never_goes_negative(db, make_item):
    chair = make_item(stock=1)
    repo = InventoryRepository(db)
    assert not repo.decrement_stock(chair, 2)
    assert repo.decrement_stock(chair, 1)
    db.commit()
    assert db.get(InventoryItem, chair.id).stock == 0
