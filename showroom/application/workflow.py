"""
Order workflow: creation with stock reservation, cancellation with
restock, and status updates with tracking propagation.

Each operation is one database transaction. Reads that feed a stock
decision lock their rows where the database supports it, and the stock
decrement itself is guarded, so a concurrent order for the last unit
fails cleanly instead of driving stock negative. Nothing is retried; a
failed call leaves no partial writes and the caller resubmits.
"""
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shared.core import get_logger
from showroom.auth import Principal
from showroom.domain.exceptions import (
    InsufficientStock,
    InvalidStatusTransition,
    InventoryItemNotFound,
    OrderNotCancellable,
    StockConflict,
)
from showroom.domain.models import InventoryItem, Order, OrderLine, Shipment, new_id, utcnow
from showroom.domain.statuses import (
    EARLY_SHIPMENT_STATUSES,
    NON_CANCELLABLE,
    OPEN_ORDER_STATUSES,
    TERMINAL,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    is_backward,
    tracking_status_for,
)
from showroom.infrastructure.repository import (
    InventoryRepository,
    InventoryRepositoryProtocol,
    OrderRepository,
    OrderRepositoryProtocol,
)
from .schemas import ActionResult, OrderCreate, ResultKind, StatusUpdate
from .validation import validate

logger = get_logger(__name__)

VALIDATION_MESSAGE = "Validation failed. Please check the form fields."
SHIPMENT_ORIGIN = "Showroom"


class Revalidator(Protocol):
    def revalidate(self, paths: List[str]) -> None: ...


class NoRevalidation:
    def revalidate(self, paths: List[str]) -> None:
        pass


def order_paths(order_id: str, item_ids=()) -> List[str]:
    """View paths that show an order, its shipment or the stock it touched."""
    paths = ["/orders", f"/orders/{order_id}", "/logistics", f"/logistics/{order_id}", "/"]
    if item_ids:
        paths.append("/inventory")
        paths.extend(f"/inventory/{item_id}" for item_id in item_ids)
    return paths


class OrderWorkflow:
    def __init__(
        self,
        db: Session,
        revalidator: Optional[Revalidator] = None,
        orders: Optional[OrderRepositoryProtocol] = None,
        inventory: Optional[InventoryRepositoryProtocol] = None,
    ):
        self.db = db
        self.revalidator = revalidator or NoRevalidation()
        self.orders = orders or OrderRepository(db)
        self.inventory = inventory or InventoryRepository(db)

    # --- creation ---

    def create_order(self, data: Union[OrderCreate, dict], principal: Principal) -> ActionResult:
        payload, errors = validate(OrderCreate, data)
        if errors:
            logger.info("Order creation rejected by validation", extra={'extra_fields': {'errors': errors}})
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        if payload.idempotency_key:
            existing = self.orders.get_by_idempotency_key(payload.idempotency_key)
            if existing is not None:
                result = self._replayed(existing)
                self.db.rollback()
                return result

        try:
            order = self._place(payload, principal)
            self.db.commit()
        except (InventoryItemNotFound, InsufficientStock, StockConflict) as e:
            self.db.rollback()
            logger.info(f"Order creation refused: {e}")
            return ActionResult.fail(str(e), ResultKind.BUSINESS, {"items": [str(e)]})
        except IntegrityError:
            self.db.rollback()
            if payload.idempotency_key:
                # a concurrent request with the same key won the unique index
                existing = self.orders.get_by_idempotency_key(payload.idempotency_key)
                if existing is not None:
                    result = self._replayed(existing)
                    self.db.rollback()
                    return result
            logger.error("Order creation hit a constraint violation", exc_info=True)
            return ActionResult.fail("Failed to create order. Please try again.", ResultKind.INFRASTRUCTURE)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Order creation transaction failed", exc_info=True)
            return ActionResult.fail("Failed to create order. Please try again.", ResultKind.INFRASTRUCTURE)

        item_ids = [line.item_id for line in order.lines]
        logger.info(
            f"Order {order.id} created",
            extra={'extra_fields': {
                'order_id': order.id,
                'order_number': order.order_number,
                'total_amount': str(order.total_amount),
                'lines': len(order.lines),
            }}
        )
        self.revalidator.revalidate(order_paths(order.id, item_ids))
        return ActionResult.ok(
            f"Order {order.order_number} created successfully.",
            order_id=order.id,
            shipment_id=order.shipment.id,
        )

    def _place(self, payload: OrderCreate, principal: Principal) -> Order:
        # merge repeated lines so the stock check sees the combined quantity
        wanted: Dict[str, int] = OrderedDict()
        for line in payload.items:
            wanted[line.item_id] = wanted.get(line.item_id, 0) + line.quantity

        # every check runs before the first write
        items: Dict[str, InventoryItem] = {}
        for item_id, quantity in wanted.items():
            item = self.inventory.get(item_id, for_update=True)
            if item is None:
                raise InventoryItemNotFound(item_id)
            if item.stock < quantity:
                raise InsufficientStock(item_id, item.name, item.stock, quantity)
            items[item_id] = item

        lines = []
        for position, (item_id, quantity) in enumerate(wanted.items()):
            item = items[item_id]
            # snapshot before the decrement expires the row
            lines.append(OrderLine(
                position=position,
                item_id=item.id,
                name=item.name,
                sku=item.sku,
                quantity=quantity,
                unit_price=Decimal(item.price),
                image_url=item.image_url,
            ))
            if not self.inventory.decrement_stock(item, quantity):
                raise StockConflict(f"Stock for {item.name} (ID: {item_id}) changed while placing the order.")

        shipment = Shipment(carrier="TBD", tracking_number="Pending", history=[])
        shipment.record(ShipmentStatus.PROCESSING.value, location=SHIPMENT_ORIGIN, notes="Order placed")

        now = utcnow()
        order_id = new_id()
        order = Order(
            id=order_id,
            order_number=self.orders.order_number_for(order_id),
            idempotency_key=payload.idempotency_key,
            status=payload.status.value,
            payment_status=payload.payment_status.value,
            shipping_method=payload.shipping_method,
            total_amount=sum((line.unit_price * line.quantity for line in lines), Decimal("0")),
            customer_name=payload.customer.name,
            customer_email=payload.customer.email,
            customer_phone=payload.customer.phone,
            shipping_address=payload.customer.address,
            created_by=principal.user_id,
            created_at=now,
            updated_at=now,
            lines=lines,
            shipment=shipment,
        )
        return self.orders.add(order)

    def _replayed(self, order: Order) -> ActionResult:
        logger.info(f"Replaying order {order.id} for idempotency key {order.idempotency_key}")
        return ActionResult.ok(
            f"Order {order.order_number} was already created.",
            order_id=order.id,
            shipment_id=order.shipment.id if order.shipment else None,
        )

    # --- cancellation ---

    def cancel_order(self, order_id: str, principal: Principal) -> ActionResult:
        if not order_id:
            return ActionResult.fail("Order ID required.", ResultKind.VALIDATION, {"order_id": ["Order ID required."]})

        try:
            order = self.orders.get(order_id, for_update=True)
            if order is None:
                self.db.rollback()
                return ActionResult.fail(f"Order {order_id} not found.", ResultKind.NOT_FOUND)
            if order.status == OrderStatus.CANCELLED.value:
                result = ActionResult.ok(f"Order {order.order_number} is already cancelled.", order_id=order.id)
                self.db.rollback()
                return result

            restocked, skipped = self._cancel(order, principal)
            self.db.commit()
        except OrderNotCancellable as e:
            self.db.rollback()
            return ActionResult.fail(str(e), ResultKind.BUSINESS)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Cancellation of order {order_id} failed", exc_info=True)
            return ActionResult.fail("Failed to cancel order. Please try again.", ResultKind.INFRASTRUCTURE)

        self.revalidator.revalidate(order_paths(order.id, restocked))

        message = f"Order {order.order_number} cancelled successfully. {len(restocked)} line(s) restocked"
        if skipped:
            message += f", {skipped} skipped (item no longer in inventory)"
        return ActionResult.ok(message + ".", order_id=order.id, shipment_id=order.shipment.id if order.shipment else None)

    def _cancel(self, order: Order, principal: Principal, final_status: OrderStatus = OrderStatus.CANCELLED):
        """Close the order as ``final_status`` and stage the restock; returns (restocked item ids, skipped count)."""
        if order.status in {status.value for status in NON_CANCELLABLE}:
            raise OrderNotCancellable(f"Cannot cancel order that is already {order.status}.")

        order.status = final_status.value
        order.payment_status = PaymentStatus.REFUNDED.value
        order.updated_at = utcnow()

        restocked: List[str] = []
        skipped = 0
        for line in order.lines:
            item = self.inventory.get(line.item_id, for_update=True)
            if item is None:
                # best effort: the order still cancels without this line
                logger.warning(
                    f"Inventory item {line.name} (ID: {line.item_id}) not found. Skipping restock.",
                    extra={'extra_fields': {'order_id': order.id, 'item_id': line.item_id}}
                )
                skipped += 1
                continue
            self.inventory.increment_stock(item, line.quantity)
            restocked.append(line.item_id)

        shipment = order.shipment
        if shipment is not None and shipment.status in {status.value for status in EARLY_SHIPMENT_STATUSES}:
            shipment.record(
                ShipmentStatus.CANCELLED.value,
                notes=f"Order {final_status.value.lower()} by {principal.user_id}",
            )

        logger.info(
            f"Order {order.id} {final_status.value.lower()}",
            extra={'extra_fields': {'order_id': order.id, 'restocked': len(restocked), 'skipped': skipped}}
        )
        return restocked, skipped

    # --- status updates ---

    def update_status(
        self,
        order_id: str,
        data: Union[StatusUpdate, dict],
        principal: Principal,
    ) -> ActionResult:
        payload, errors = validate(StatusUpdate, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        closing = payload.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)
        if closing and payload.payment_status not in (None, PaymentStatus.REFUNDED):
            message = f"A {payload.status.value} order's payment is always Refunded."
            return ActionResult.fail(message, ResultKind.VALIDATION, {"payment_status": [message]})

        if payload.status == OrderStatus.CANCELLED:
            # cancelling always goes through the restock path
            return self.cancel_order(order_id, principal)

        restocked: List[str] = []
        try:
            order = self.orders.get(order_id, for_update=True)
            if order is None:
                self.db.rollback()
                return ActionResult.fail(f"Order {order_id} not found.", ResultKind.NOT_FOUND)
            if payload.status == OrderStatus.REFUNDED and order.status in {s.value for s in OPEN_ORDER_STATUSES}:
                # nothing has left the showroom: the refund returns the stock like a cancel
                restocked, _ = self._cancel(order, principal, final_status=OrderStatus.REFUNDED)
            else:
                self._apply_status(order, payload, principal)
            self.db.commit()
        except InvalidStatusTransition as e:
            self.db.rollback()
            return ActionResult.fail(str(e), ResultKind.BUSINESS, {"status": [str(e)]})
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Status update of order {order_id} failed", exc_info=True)
            return ActionResult.fail("Failed to update order status. Please try again.", ResultKind.INFRASTRUCTURE)

        self.revalidator.revalidate(order_paths(order.id, restocked))
        return ActionResult.ok(
            f"Order {order.order_number} status updated to {order.status}.",
            order_id=order.id,
            shipment_id=order.shipment.id if order.shipment else None,
        )

    def _apply_status(self, order: Order, payload: StatusUpdate, principal: Principal) -> None:
        if order.status in {status.value for status in TERMINAL}:
            raise InvalidStatusTransition(f"Order is {order.status}; its status can no longer change.")
        if is_backward(OrderStatus(order.status), payload.status):
            raise InvalidStatusTransition(f"Order is {order.status}; it cannot move back to {payload.status.value}.")

        previous = order.status
        order.status = payload.status.value
        if payload.status == OrderStatus.REFUNDED:
            order.payment_status = PaymentStatus.REFUNDED.value
        elif payload.payment_status is not None:
            order.payment_status = payload.payment_status.value
        order.updated_at = utcnow()

        # tracking follows in the same transaction
        tracking = tracking_status_for(payload.status)
        shipment = order.shipment
        if tracking is not None and shipment is not None and shipment.status != tracking.value:
            shipment.record(tracking.value, notes=f"Order marked {order.status} by {principal.user_id}")
            if tracking == ShipmentStatus.DELIVERED:
                shipment.actual_delivery = utcnow()

        logger.info(
            f"Order {order.id} status {previous} -> {order.status}",
            extra={'extra_fields': {
                'order_id': order.id,
                'tracking_status': shipment.status if shipment is not None else None,
            }}
        )
