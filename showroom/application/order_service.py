from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Union
from shared.core import get_logger
from showroom.domain.models import Order, Shipment, utcnow
from showroom.domain.statuses import TERMINAL, ShipmentStatus
from showroom.infrastructure.repository import OrderRepository
from .schemas import ActionResult, OrderUpdate, ResultKind, ShipmentLink, ShipmentStatusUpdate
from .validation import validate
from .workflow import VALIDATION_MESSAGE, NoRevalidation, Revalidator, order_paths

logger = get_logger(__name__)

_TERMINAL_VALUES = {status.value for status in TERMINAL}


class OrderService:
    """Order reads and the edits that never touch stock."""

    def __init__(self, db: Session, revalidator: Optional[Revalidator] = None):
        self.db = db
        self.revalidator = revalidator or NoRevalidation()
        self.orders = OrderRepository(db)

    def list(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Order]:
        return self.orders.list(status=status, skip=skip, limit=limit)

    def get(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)

    def list_shipments(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Shipment]:
        return self.orders.list_shipments(status=status, skip=skip, limit=limit)

    def update(self, order_id: str, data: Union[OrderUpdate, dict]) -> ActionResult:
        payload, errors = validate(OrderUpdate, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        try:
            order = self.orders.get(order_id, for_update=True)
            if order is None:
                self.db.rollback()
                return ActionResult.fail(f"Order {order_id} not found.", ResultKind.NOT_FOUND)
            if order.status in _TERMINAL_VALUES:
                self.db.rollback()
                return ActionResult.fail(f"Order is {order.status} and can no longer be edited.", ResultKind.BUSINESS)

            if payload.customer is not None:
                order.customer_name = payload.customer.name
                order.customer_email = payload.customer.email
                order.customer_phone = payload.customer.phone
                order.shipping_address = payload.customer.address
            if payload.shipping_method is not None:
                order.shipping_method = payload.shipping_method
            if payload.payment_status is not None:
                order.payment_status = payload.payment_status.value
            order.updated_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to update order {order_id}", exc_info=True)
            return ActionResult.fail("Failed to update order. Please try again.", ResultKind.INFRASTRUCTURE)

        logger.warning(f"Order {order_id} edited; line items and stock are unchanged")
        self.revalidator.revalidate(order_paths(order.id))
        return ActionResult.ok(
            f"Order '{order.order_number}' updated successfully! Line items and stock were not changed.",
            order_id=order.id,
        )

    def link_shipment(self, order_id: str, data: Union[ShipmentLink, dict]) -> ActionResult:
        payload, errors = validate(ShipmentLink, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        try:
            order = self.orders.get(order_id, for_update=True)
            if order is None:
                self.db.rollback()
                return ActionResult.fail(f"Order {order_id} not found.", ResultKind.NOT_FOUND)
            shipment = order.shipment
            if shipment is None:
                # orders imported without tracking info get one on first link
                shipment = Shipment(history=[])
                shipment.record(ShipmentStatus.LABEL_CREATED.value)
                order.shipment = shipment
            shipment.carrier = payload.carrier
            shipment.tracking_number = payload.tracking_number
            if payload.estimated_delivery is not None:
                shipment.estimated_delivery = payload.estimated_delivery
            shipment.updated_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to link shipment to order {order_id}", exc_info=True)
            return ActionResult.fail("Failed to link shipment. Please try again.", ResultKind.INFRASTRUCTURE)

        self.revalidator.revalidate(order_paths(order.id))
        return ActionResult.ok("Shipment linked to order successfully.", order_id=order.id, shipment_id=shipment.id)

    def update_shipment_status(self, order_id: str, data: Union[ShipmentStatusUpdate, dict]) -> ActionResult:
        """Record a carrier event on the order's shipment."""
        payload, errors = validate(ShipmentStatusUpdate, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        try:
            order = self.orders.get(order_id, for_update=True)
            if order is None or order.shipment is None:
                self.db.rollback()
                return ActionResult.fail(f"Shipment for order {order_id} not found.", ResultKind.NOT_FOUND)
            if order.status in _TERMINAL_VALUES:
                self.db.rollback()
                return ActionResult.fail(f"Order is {order.status}; its shipment can no longer change.", ResultKind.BUSINESS)

            shipment = order.shipment
            shipment.record(payload.status.value, location=payload.location or "Update Recorded", notes=payload.notes)
            if payload.status == ShipmentStatus.DELIVERED:
                shipment.actual_delivery = utcnow()
            shipment.updated_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to update shipment status for order {order_id}", exc_info=True)
            return ActionResult.fail("Failed to update shipment status. Please try again.", ResultKind.INFRASTRUCTURE)

        logger.info(f"Shipment {shipment.id} of order {order_id} is now {shipment.status}")
        self.revalidator.revalidate(order_paths(order.id))
        return ActionResult.ok("Shipment status updated successfully.", order_id=order.id, shipment_id=shipment.id)
