from enum import Enum
from typing import Optional


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    PENDING_PAYMENT = "Pending Payment"
    REFUNDED = "Refunded"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    REFUNDED = "Refunded"
    FAILED = "Failed"


class ShipmentStatus(str, Enum):
    PROCESSING = "Processing"
    LABEL_CREATED = "Label Created"
    PICKED_UP = "Picked Up"
    IN_TRANSIT = "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    EXCEPTION = "Exception"
    DELAYED = "Delayed"
    CANCELLED = "Cancelled"


# Cancelling is refused once goods have left (or money went back)
NON_CANCELLABLE = {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.REFUNDED}

# No status change is accepted out of these
TERMINAL = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

OPEN_ORDER_STATUSES = {OrderStatus.PROCESSING, OrderStatus.PENDING_PAYMENT}

# A shipment still in one of these can be called off with its order
EARLY_SHIPMENT_STATUSES = {ShipmentStatus.PROCESSING, ShipmentStatus.LABEL_CREATED}

IN_TRANSIT_SHIPMENT_STATUSES = {
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELAYED,
}

_TRACKING_FOR_ORDER_STATUS = {
    OrderStatus.PROCESSING: ShipmentStatus.PROCESSING,
    OrderStatus.SHIPPED: ShipmentStatus.IN_TRANSIT,
    OrderStatus.DELIVERED: ShipmentStatus.DELIVERED,
    OrderStatus.CANCELLED: ShipmentStatus.CANCELLED,
}


def tracking_status_for(status: OrderStatus) -> Optional[ShipmentStatus]:
    """Shipment status mirrored onto the tracking info, or None to leave it alone."""
    return _TRACKING_FOR_ORDER_STATUS.get(status)


# Fulfilment order; an order never moves back down this ladder
_FULFILMENT_RANK = {
    OrderStatus.PROCESSING: 0,
    OrderStatus.PENDING_PAYMENT: 0,
    OrderStatus.SHIPPED: 1,
    OrderStatus.DELIVERED: 2,
}


def is_backward(current: OrderStatus, new: OrderStatus) -> bool:
    """True when ``new`` would undo fulfilment already reached by ``current``."""
    if current not in _FULFILMENT_RANK or new not in _FULFILMENT_RANK:
        return False
    return _FULFILMENT_RANK[new] < _FULFILMENT_RANK[current]
