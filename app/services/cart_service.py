from typing import Optional

from sqlmodel import Session, select

from app.exceptions import NotFoundError, ProductNotFoundError, ValidationError
from app.models.cart import Cart, CartItem
from app.models.product import Product


def get_or_create_cart(session: Session, user_id: int) -> Cart:
    cart = session.exec(select(Cart).where(Cart.user_id == user_id)).first()
    if cart:
        return cart

    cart = Cart(user_id=user_id)
    session.add(cart)
    session.commit()
    session.refresh(cart)
    return cart


def get_user_cart(session: Session, cart_id: int, user_id: int) -> Cart:
    cart = session.get(Cart, cart_id)
    if not cart or cart.user_id != user_id:
        raise NotFoundError("Cart not found")
    return cart


def add_item(session: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    product = session.get(Product, product_id)
    if not product:
        raise ProductNotFoundError()

    cart = get_or_create_cart(session, user_id)

    existing = session.exec(
        select(CartItem).where(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id,
        )
    ).first()

    if existing:
        existing.quantity += quantity
        existing.total_price = existing.quantity * existing.unit_price
        item = existing
    else:
        # price and name are fixed when the item first lands in the cart
        item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=product.price,
            total_price=product.price * quantity,
        )

    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def _owned_item(session: Session, user_id: int, item_id: int) -> CartItem:
    item = session.get(CartItem, item_id)
    if not item or item.cart.user_id != user_id:
        raise NotFoundError("Cart item not found")
    return item


def update_item_quantity(session: Session, user_id: int, item_id: int, quantity: int) -> CartItem:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero")

    item = _owned_item(session, user_id, item_id)
    item.quantity = quantity
    item.total_price = item.unit_price * quantity

    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def remove_item(session: Session, user_id: int, item_id: int):
    item = _owned_item(session, user_id, item_id)
    session.delete(item)
    session.commit()


def clear_cart(session: Session, cart_id: int, user_id: Optional[int] = None) -> int:
    """Delete every item of a cart. Does not commit."""
    cart = session.get(Cart, cart_id)
    if not cart or (user_id is not None and cart.user_id != user_id):
        return 0

    removed = len(cart.items)
    cart.items.clear()  # delete-orphan removes the rows on flush
    session.add(cart)
    return removed
