from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from showroom.auth import get_principal
from showroom.infrastructure.db import get_db
from showroom.infrastructure.cache import ViewCache, get_view_cache
from showroom.application.order_service import OrderService
from showroom.application.schemas import ShipmentRead
from showroom.domain.statuses import ShipmentStatus
from .responses import cached_view, respond

# Shipments are addressed by the order that owns them
router = APIRouter(prefix="/logistics", tags=["logistics"], dependencies=[Depends(get_principal)])

@router.get("/", response_model=list[ShipmentRead])
def list_shipments(
    request: Request,
    status: Optional[ShipmentStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    service = OrderService(db)
    return cached_view(cache, "/logistics", request, lambda: [
        ShipmentRead.model_validate(shipment)
        for shipment in service.list_shipments(status=status.value if status else None, skip=skip, limit=limit)
    ])

@router.get("/{order_id}", response_model=ShipmentRead)
def get_shipment(order_id: str, request: Request, db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    def build():
        order = OrderService(db).get(order_id)
        if not order or not order.shipment:
            raise HTTPException(status_code=404, detail="Shipment not found")
        return ShipmentRead.model_validate(order.shipment)
    return cached_view(cache, f"/logistics/{order_id}", request, build)

@router.post("/{order_id}/status")
def update_shipment_status(order_id: str, payload: dict = Body(...), db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    return respond(OrderService(db, cache).update_shipment_status(order_id, payload))
