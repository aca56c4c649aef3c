"""Domain exceptions.

Raised inside the workflow and services when a business rule is
violated; the application layer turns them into result objects.
"""


class ShowroomError(Exception):
    """Base class for business-rule violations."""


class InventoryItemNotFound(ShowroomError):
    def __init__(self, item_id: str):
        super().__init__(f"Inventory item with ID {item_id} not found.")
        self.item_id = item_id


class InsufficientStock(ShowroomError):
    def __init__(self, item_id: str, name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {name} (ID: {item_id}): "
            f"{available} available, {requested} requested."
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class StockConflict(ShowroomError):
    """Stock changed between the check and the guarded decrement."""


class OrderNotCancellable(ShowroomError):
    pass


class InvalidStatusTransition(ShowroomError):
    pass
