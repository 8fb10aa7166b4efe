from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_admin
from app.models.user import User
from app.schemas.inventory_schemas import (
    InventoryTransactionOut,
    ReserveStockRequest,
    RestockRequest,
)
from app.services import inventory_service

router = APIRouter()


@router.post("/stock/restock")
def restock_product(
    payload: RestockRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    result = inventory_service.restock_product(
        session, payload.product_id, payload.quantity, admin.id, note=payload.reason
    )
    return {
        "message": "Product restocked",
        "data": {"product_id": result.product_id, "new_stock": result.new_stock},
    }


@router.post("/stock/reserve")
def reserve_stock(
    payload: ReserveStockRequest,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    results = inventory_service.reserve_stock(session, payload.items, admin.id)
    return {
        "message": "Stock reserved for order",
        "data": [{"product_id": r.product_id, "new_stock": r.new_stock} for r in results],
    }


@router.get("/transactions/{product_id}")
def list_inventory_transactions(
    product_id: int,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    rows = inventory_service.list_transactions(session, product_id)
    return {
        "message": "Inventory transactions fetched successfully",
        "data": [InventoryTransactionOut.model_validate(r) for r in rows],
    }
