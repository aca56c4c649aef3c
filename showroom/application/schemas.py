from pydantic import BaseModel, Field, EmailStr, HttpUrl, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, List
from showroom.domain.statuses import OrderStatus, PaymentStatus, ShipmentStatus

# --- inventory ---

class InventoryItemInput(BaseModel):
    name: str = Field(min_length=3)
    sku: str = Field(min_length=1)
    style: str = Field(min_length=1)
    material: str = Field(min_length=1)
    dimensions: str = Field(min_length=1)
    weight: Optional[str] = None
    stock: int = Field(0, ge=0)
    price: Decimal = Field(Decimal("0"), ge=0)
    lead_time: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[HttpUrl] = None

    @field_validator("sku")
    @classmethod
    def _upper_sku(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("image_url", "weight", "lead_time", "description", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def to_row(self) -> dict:
        row = self.model_dump()
        row["image_url"] = str(self.image_url) if self.image_url else None
        return row

class InventoryItemRead(BaseModel):
    id: str
    name: str
    sku: str
    style: str
    material: str
    dimensions: str
    weight: Optional[str] = None
    stock: int
    price: Decimal
    lead_time: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

# --- orders ---

class CustomerInfo(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: str = Field(min_length=1)

    @field_validator("email", "phone", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

class OrderLineInput(BaseModel):
    item_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)

class OrderCreate(BaseModel):
    customer: CustomerInfo
    items: List[OrderLineInput] = Field(min_length=1)
    status: OrderStatus = OrderStatus.PROCESSING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    shipping_method: Optional[str] = None
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("status")
    @classmethod
    def _open_status_only(cls, value: OrderStatus) -> OrderStatus:
        if value not in (OrderStatus.PROCESSING, OrderStatus.PENDING_PAYMENT):
            raise ValueError("New orders start as Processing or Pending Payment.")
        return value

class OrderUpdate(BaseModel):
    customer: Optional[CustomerInfo] = None
    shipping_method: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

class StatusUpdate(BaseModel):
    status: OrderStatus
    payment_status: Optional[PaymentStatus] = None

class OrderLineRead(BaseModel):
    item_id: str
    name: str
    sku: str
    quantity: int
    unit_price: Decimal
    image_url: Optional[str] = None
    class Config:
        from_attributes = True

class ShipmentRead(BaseModel):
    id: str
    order_id: str
    carrier: str
    tracking_number: str
    status: str
    history: List[dict]
    estimated_delivery: Optional[str] = None
    actual_delivery: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: str
    order_number: str
    status: str
    payment_status: str
    shipping_method: Optional[str] = None
    total_amount: Decimal
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: str
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    lines: List[OrderLineRead]
    shipment: Optional[ShipmentRead] = None
    class Config:
        from_attributes = True

# --- logistics ---

class ShipmentLink(BaseModel):
    carrier: str = Field(min_length=1)
    tracking_number: str = Field(min_length=1)
    estimated_delivery: Optional[str] = None

class ShipmentStatusUpdate(BaseModel):
    status: ShipmentStatus
    location: Optional[str] = None
    notes: Optional[str] = None

# --- dashboard ---

class LowStockItem(BaseModel):
    id: str
    name: str
    sku: str
    stock: int
    style: str
    material: str
    class Config:
        from_attributes = True

class DashboardRead(BaseModel):
    total_items: int
    low_stock_items: List[LowStockItem]
    open_orders: int
    in_transit_shipments: int

# --- auth ---

class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

class TokenRead(BaseModel):
    access_token: str
    token_type: str = "bearer"

# --- mutation results ---

class ResultKind:
    OK = "ok"
    VALIDATION = "validation"
    BUSINESS = "business"
    NOT_FOUND = "not_found"
    INFRASTRUCTURE = "infrastructure"

class ActionResult(BaseModel):
    """Plain result handed back to the UI for every mutation."""
    success: bool
    message: str
    order_id: Optional[str] = None
    shipment_id: Optional[str] = None
    item_id: Optional[str] = None
    errors: Optional[Dict[str, List[str]]] = None
    kind: str = Field(ResultKind.OK, exclude=True)

    @classmethod
    def ok(cls, message: str, **ids) -> "ActionResult":
        return cls(success=True, message=message, **ids)

    @classmethod
    def fail(cls, message: str, kind: str, errors: Optional[Dict[str, List[str]]] = None) -> "ActionResult":
        return cls(success=False, message=message, kind=kind, errors=errors)
