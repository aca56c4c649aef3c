"""
Repositories over the showroom tables.

The workflow only sees these protocols. A shipment is reached through
``order.shipment``; whether it lives in its own table (as here) or inside
the order row is a detail of the implementation below.
"""
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from showroom.domain.models import InventoryItem, Order, Shipment, utcnow


def _values(statuses: Iterable) -> List[str]:
    return [getattr(status, "value", status) for status in statuses]


@runtime_checkable
class InventoryRepositoryProtocol(Protocol):
    def get(self, item_id: str, for_update: bool = False) -> Optional[InventoryItem]: ...
    def list(self, q: Optional[str] = None, low_stock_below: Optional[int] = None,
             skip: int = 0, limit: int = 100) -> List[InventoryItem]: ...
    def add(self, item: InventoryItem) -> InventoryItem: ...
    def delete(self, item: InventoryItem) -> None: ...
    def sku_taken(self, sku: str, exclude_id: Optional[str] = None) -> bool: ...
    def decrement_stock(self, item: InventoryItem, quantity: int) -> bool: ...
    def increment_stock(self, item: InventoryItem, quantity: int) -> None: ...
    def count(self) -> int: ...
    def low_stock(self, threshold: int, limit: int = 5) -> List[InventoryItem]: ...


@runtime_checkable
class OrderRepositoryProtocol(Protocol):
    def get(self, order_id: str, for_update: bool = False) -> Optional[Order]: ...
    def get_by_idempotency_key(self, key: str) -> Optional[Order]: ...
    def list(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Order]: ...
    def add(self, order: Order) -> Order: ...
    def order_number_for(self, order_id: str) -> str: ...
    def count_by_status(self, statuses: Iterable[str]) -> int: ...
    def list_shipments(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Shipment]: ...
    def count_shipments_by_status(self, statuses: Iterable[str]) -> int: ...


class InventoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, item_id: str, for_update: bool = False) -> Optional[InventoryItem]:
        stmt = select(InventoryItem).where(InventoryItem.id == item_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.scalars(stmt).first()

    def list(self, q: Optional[str] = None, low_stock_below: Optional[int] = None,
             skip: int = 0, limit: int = 100) -> List[InventoryItem]:
        stmt = select(InventoryItem)
        if q:
            pattern = f"%{q.lower()}%"
            stmt = stmt.where(or_(
                func.lower(InventoryItem.name).like(pattern),
                func.lower(InventoryItem.sku).like(pattern),
            ))
        if low_stock_below is not None:
            stmt = stmt.where(InventoryItem.stock < low_stock_below)
        stmt = stmt.order_by(InventoryItem.name).offset(skip).limit(limit)
        return list(self.db.scalars(stmt))

    def add(self, item: InventoryItem) -> InventoryItem:
        self.db.add(item)
        self.db.flush()
        return item

    def delete(self, item: InventoryItem) -> None:
        self.db.delete(item)

    def sku_taken(self, sku: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(InventoryItem.id).where(InventoryItem.sku == sku)
        if exclude_id:
            stmt = stmt.where(InventoryItem.id != exclude_id)
        return self.db.scalars(stmt).first() is not None

    def decrement_stock(self, item: InventoryItem, quantity: int) -> bool:
        """Guarded decrement; False when the row no longer holds ``quantity`` units."""
        result = self.db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id, InventoryItem.stock >= quantity)
            .values(stock=InventoryItem.stock - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.expire(item, ["stock", "updated_at"])
        return result.rowcount == 1

    def increment_stock(self, item: InventoryItem, quantity: int) -> None:
        self.db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id)
            .values(stock=InventoryItem.stock + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.expire(item, ["stock", "updated_at"])

    def count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(InventoryItem))

    def low_stock(self, threshold: int, limit: int = 5) -> List[InventoryItem]:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.stock < threshold)
            .order_by(InventoryItem.stock.asc())
            .limit(limit)
        )
        return list(self.db.scalars(stmt))


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def _select(self):
        return select(Order).options(selectinload(Order.lines), selectinload(Order.shipment))

    def get(self, order_id: str, for_update: bool = False) -> Optional[Order]:
        stmt = self._select().where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update(of=Order).execution_options(populate_existing=True)
        return self.db.scalars(stmt).first()

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self.db.scalars(self._select().where(Order.idempotency_key == key)).first()

    def list(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Order]:
        stmt = self._select()
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(self.db.scalars(stmt))

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def order_number_for(self, order_id: str) -> str:
        """Order number ORD-YYYY-XXXXXXXXXXXX, read off the order's own id; no counter is shared between creates."""
        return f"ORD-{utcnow().year}-{order_id[:12].upper()}"

    def count_by_status(self, statuses: Iterable[str]) -> int:
        return self.db.scalar(
            select(func.count()).select_from(Order).where(Order.status.in_(_values(statuses)))
        )

    def list_shipments(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Shipment]:
        stmt = select(Shipment).join(Shipment.order)
        if status:
            stmt = stmt.where(Shipment.status == status)
        stmt = stmt.order_by(Shipment.updated_at.desc()).offset(skip).limit(limit)
        return list(self.db.scalars(stmt))

    def count_shipments_by_status(self, statuses: Iterable[str]) -> int:
        return self.db.scalar(
            select(func.count()).select_from(Shipment).where(Shipment.status.in_(_values(statuses)))
        )
