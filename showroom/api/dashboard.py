from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from showroom.auth import get_principal
from showroom.infrastructure.db import get_db
from showroom.infrastructure.cache import ViewCache, get_view_cache
from showroom.application.inventory_service import InventoryService
from showroom.application.schemas import DashboardRead
from .responses import cached_view

router = APIRouter(tags=["dashboard"], dependencies=[Depends(get_principal)])

@router.get("/dashboard", response_model=DashboardRead)
def dashboard(request: Request, db: Session = Depends(get_db), cache: ViewCache = Depends(get_view_cache)):
    """Inventory totals, low-stock items, open orders and shipments on the road."""
    # cached under "/" so every mutation that revalidates the home view refreshes it
    return cached_view(cache, "/", request, lambda: InventoryService(db).dashboard())
