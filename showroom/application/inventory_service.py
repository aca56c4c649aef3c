from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional, Union
from shared.core import get_logger
from showroom.core_settings import get_settings
from showroom.domain.models import InventoryItem, utcnow
from showroom.domain.statuses import IN_TRANSIT_SHIPMENT_STATUSES, OPEN_ORDER_STATUSES
from showroom.infrastructure.repository import InventoryRepository, OrderRepository
from .schemas import ActionResult, DashboardRead, InventoryItemInput, LowStockItem, ResultKind
from .validation import validate
from .workflow import VALIDATION_MESSAGE, Revalidator, NoRevalidation

logger = get_logger(__name__)

DUPLICATE_SKU = "An item with this SKU already exists."


class InventoryService:
    def __init__(self, db: Session, revalidator: Optional[Revalidator] = None, low_stock_threshold: Optional[int] = None):
        self.db = db
        self.revalidator = revalidator or NoRevalidation()
        self.items = InventoryRepository(db)
        if low_stock_threshold is None:
            low_stock_threshold = get_settings().LOW_STOCK_THRESHOLD
        self.low_stock_threshold = low_stock_threshold

    def list(self, q: Optional[str] = None, low_stock: bool = False, skip: int = 0, limit: int = 100) -> List[InventoryItem]:
        threshold = self.low_stock_threshold if low_stock else None
        return self.items.list(q=q, low_stock_below=threshold, skip=skip, limit=limit)

    def get(self, item_id: str) -> Optional[InventoryItem]:
        return self.items.get(item_id)

    def create(self, data: Union[InventoryItemInput, dict]) -> ActionResult:
        payload, errors = validate(InventoryItemInput, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)
        if self.items.sku_taken(payload.sku):
            self.db.rollback()
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, {"sku": [DUPLICATE_SKU]})

        try:
            item = self.items.add(InventoryItem(**payload.to_row()))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Failed to add inventory item", exc_info=True)
            return ActionResult.fail("Failed to add item. Please try again.", ResultKind.INFRASTRUCTURE)

        logger.info(f"Inventory item {item.id} added", extra={'extra_fields': {'sku': item.sku, 'stock': item.stock}})
        self.revalidator.revalidate(["/inventory", "/"])
        return ActionResult.ok(f"Item '{item.name}' added successfully!", item_id=item.id)

    def update(self, item_id: str, data: Union[InventoryItemInput, dict]) -> ActionResult:
        if not item_id:
            return ActionResult.fail("Item ID is required for update.", ResultKind.VALIDATION)
        payload, errors = validate(InventoryItemInput, data)
        if errors:
            return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, errors)

        try:
            item = self.items.get(item_id, for_update=True)
            if item is None:
                self.db.rollback()
                return ActionResult.fail(f"Item with ID {item_id} not found.", ResultKind.NOT_FOUND)
            if self.items.sku_taken(payload.sku, exclude_id=item_id):
                self.db.rollback()
                return ActionResult.fail(VALIDATION_MESSAGE, ResultKind.VALIDATION, {"sku": [DUPLICATE_SKU]})
            for key, value in payload.to_row().items():
                setattr(item, key, value)
            item.updated_at = utcnow()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to update inventory item {item_id}", exc_info=True)
            return ActionResult.fail("Failed to update item. Please try again.", ResultKind.INFRASTRUCTURE)

        self.revalidator.revalidate(["/inventory", f"/inventory/{item_id}", "/"])
        return ActionResult.ok(f"Item '{item.name}' updated successfully!", item_id=item.id)

    def delete(self, item_id: str) -> ActionResult:
        if not item_id:
            return ActionResult.fail("Item ID is required.", ResultKind.VALIDATION)
        try:
            item = self.items.get(item_id)
            if item is None:
                self.db.rollback()
                return ActionResult.fail(f"Item with ID {item_id} not found.", ResultKind.NOT_FOUND)
            # order lines keep their snapshot; cancelling those orders later skips the restock
            self.items.delete(item)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Failed to delete inventory item {item_id}", exc_info=True)
            return ActionResult.fail("Failed to delete item. Please try again.", ResultKind.INFRASTRUCTURE)

        logger.info(f"Inventory item {item_id} deleted")
        self.revalidator.revalidate(["/inventory", f"/inventory/{item_id}", "/"])
        return ActionResult.ok("Item deleted successfully.", item_id=item_id)

    def dashboard(self) -> DashboardRead:
        orders = OrderRepository(self.db)
        return DashboardRead(
            total_items=self.items.count(),
            low_stock_items=[
                LowStockItem.model_validate(item)
                for item in self.items.low_stock(self.low_stock_threshold, limit=5)
            ],
            open_orders=orders.count_by_status(OPEN_ORDER_STATUSES),
            in_transit_shipments=orders.count_shipments_by_status(IN_TRANSIT_SHIPMENT_STATUSES),
        )

