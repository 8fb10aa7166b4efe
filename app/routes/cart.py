from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.dependencies.roles import require_customer
from app.models.user import User
from app.schemas.cart_schemas import CartAddRequest, CartItemOut, CartOut, CartUpdateRequest
from app.services import cart_service

router = APIRouter()


@router.get("")
def get_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    cart = cart_service.get_or_create_cart(session, current_user.id)
    subtotal = sum(item.total_price for item in cart.items)

    return {
        "message": "Cart fetched successfully",
        "cart": CartOut.model_validate(cart),
        "subtotal": round(subtotal, 2),
    }


@router.post("/add")
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    item = cart_service.add_item(session, current_user.id, data.product_id, data.quantity)
    return {"message": "Item added", "item": CartItemOut.model_validate(item)}


@router.put("/items/{item_id}")
def update_cart_item(
    item_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    item = cart_service.update_item_quantity(session, current_user.id, item_id, data.quantity)
    return {
        "message": "Cart item quantity updated successfully",
        "item": CartItemOut.model_validate(item),
    }


@router.delete("/items/{item_id}")
def remove_cart_item(
    item_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_customer),
):
    cart_service.remove_item(session, current_user.id, item_id)
    return {"message": "Item removed from cart successfully"}
