from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from showroom.auth import Principal, get_principal
from showroom.infrastructure.db import get_db
from showroom.infrastructure.cache import ViewCache, get_view_cache
from showroom.application.order_service import OrderService
from showroom.application.schemas import OrderRead
from showroom.application.workflow import OrderWorkflow
from showroom.domain.statuses import OrderStatus
from .responses import cached_view, respond

router = APIRouter(prefix="/orders", tags=["orders"], dependencies=[Depends(get_principal)])

@router.get("/", response_model=list[OrderRead])
def list_orders(
    request: Request,
    status: Optional[OrderStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    service = OrderService(db)
    return cached_view(cache, "/orders", request, lambda: [
        OrderRead.model_validate(order)
        for order in service.list(status=status.value if status else None, skip=skip, limit=limit)
    ])

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, request: Request, db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    def build():
        order = OrderService(db).get(order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return OrderRead.model_validate(order)
    return cached_view(cache, f"/orders/{order_id}", request, build)

@router.post("/", status_code=201)
def create_order(
    payload: dict = Body(...),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    return respond(OrderWorkflow(db, cache).create_order(payload, principal), success_status=201)

@router.put("/{order_id}")
def update_order(order_id: str, payload: dict = Body(...), db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    """Edit shipping details, shipping method or payment status. Lines and stock stay as they are."""
    return respond(OrderService(db, cache).update(order_id, payload))

@router.post("/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: dict = Body(...),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    return respond(OrderWorkflow(db, cache).update_status(order_id, payload, principal))

@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    return respond(OrderWorkflow(db, cache).cancel_order(order_id, principal))

@router.put("/{order_id}/shipment")
def link_shipment(order_id: str, payload: dict = Body(...), db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    return respond(OrderService(db, cache).link_shipment(order_id, payload))
