from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, ForeignKey, Numeric, DateTime, Text, JSON, CheckConstraint
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid

def new_id() -> str:
    return uuid.uuid4().hex

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Base(DeclarativeBase):
    pass

class InventoryItem(Base):
    __tablename__ = "inventory"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_inventory_stock_non_negative"),)
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200))
    sku: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    style: Mapped[str] = mapped_column(String(100))
    material: Mapped[str] = mapped_column(String(100))
    dimensions: Mapped[str] = mapped_column(String(100))
    weight: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    lead_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    # Caller-supplied key; a retried create returns the order stored under it
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    status: Mapped[str] = mapped_column(String(30))
    payment_status: Mapped[str] = mapped_column(String(30))
    shipping_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    # Shipping details captured at order time
    customer_name: Mapped[str] = mapped_column(String(200))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    shipping_address: Mapped[str] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    lines: Mapped[list["OrderLine"]] = relationship(
        "OrderLine", back_populates="order", cascade="all, delete-orphan", order_by="OrderLine.position"
    )
    shipment: Mapped[Optional["Shipment"]] = relationship(
        "Shipment", back_populates="order", uselist=False, cascade="all, delete-orphan"
    )

class OrderLine(Base):
    __tablename__ = "order_lines"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    # No FK: the inventory item may be deleted while the order lives on
    item_id: Mapped[str] = mapped_column(String(32), index=True)
    name: Mapped[str] = mapped_column(String(200))
    sku: Mapped[str] = mapped_column(String(50))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="lines")

class Shipment(Base):
    """Tracking info owned one-to-one by an order."""
    __tablename__ = "shipments"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), unique=True)
    carrier: Mapped[str] = mapped_column(String(50), default="TBD")
    tracking_number: Mapped[str] = mapped_column(String(100), default="Pending")
    status: Mapped[str] = mapped_column(String(30))
    # [{"timestamp", "status", "location"?, "notes"?}, ...]
    history: Mapped[list] = mapped_column(JSON, default=list)
    estimated_delivery: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    actual_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    order: Mapped[Order] = relationship("Order", back_populates="shipment")

    def record(self, status: str, location: Optional[str] = None, notes: Optional[str] = None) -> dict:
        """Set the status and append a history event; returns the event."""
        event = {"timestamp": utcnow().isoformat(), "status": status}
        if location:
            event["location"] = location
        if notes:
            event["notes"] = notes
        self.status = status
        # reassign so the JSON column is flagged dirty
        self.history = [*(self.history or []), event]
        return event
