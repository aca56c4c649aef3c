from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import Optional
from showroom.auth import get_principal
from showroom.infrastructure.db import get_db
from showroom.infrastructure.cache import ViewCache, get_view_cache
from showroom.application.inventory_service import InventoryService
from showroom.application.schemas import InventoryItemRead
from .responses import cached_view, respond

router = APIRouter(prefix="/inventory", tags=["inventory"], dependencies=[Depends(get_principal)])

@router.get("/", response_model=list[InventoryItemRead])
def list_inventory(
    request: Request,
    q: Optional[str] = Query(None, max_length=100, description="Substring of name or SKU"),
    low_stock: bool = Query(False, description="Only items under the low-stock threshold"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    cache: ViewCache = Depends(get_view_cache),
):
    service = InventoryService(db)
    return cached_view(cache, "/inventory", request, lambda: [
        InventoryItemRead.model_validate(item)
        for item in service.list(q=q, low_stock=low_stock, skip=skip, limit=limit)
    ])

@router.get("/{item_id}", response_model=InventoryItemRead)
def get_item(item_id: str, request: Request, db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    def build():
        item = InventoryService(db).get(item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return InventoryItemRead.model_validate(item)
    return cached_view(cache, f"/inventory/{item_id}", request, build)

@router.post("/", status_code=201)
def create_item(payload: dict = Body(...), db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    return respond(InventoryService(db, cache).create(payload), success_status=201)

@router.put("/{item_id}")
def update_item(item_id: str, payload: dict = Body(...), db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    return respond(InventoryService(db, cache).update(item_id, payload))

@router.delete("/{item_id}")
def delete_item(item_id: str, db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    return respond(InventoryService(db, cache).delete(item_id))
