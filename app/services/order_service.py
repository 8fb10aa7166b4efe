import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlmodel import Session, select

from app.constants.order_status import OrderStatus, PaymentStatus
from app.database import transaction
from app.exceptions import (
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    ProductNotFoundError,
)
from app.models.address import Address
from app.models.inventory_transaction import StockReason
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.product import Product
from app.models.shipping_address import ShippingAddress
from app.models.shipping_amount import ShippingAmount
from app.models.user import User
from app.schemas.address_schemas import ShippingAddressCreate
from app.schemas.orders_schemas import OrderItemRequest
from app.services.cart_service import clear_cart, get_user_cart
from app.services.inventory_service import adjust_stock
from app.services.order_event_service import log_order_event

logger = logging.getLogger(__name__)

FREE_SHIPPING_THRESHOLD = Decimal("100")
SHIPPING_FEE = Decimal("9.99")
TAX_RATE = Decimal("0.08")
CENT = Decimal("0.01")


@dataclass
class LineItem:
    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    line_total: float


@dataclass
class OrderTotals:
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(lines: List[LineItem], include_tax: bool = False) -> OrderTotals:
    """
    Subtotal, shipping and (payment-session orders only) tax.

    Shipping is free only when the subtotal is strictly above the
    threshold.
    """
    subtotal = _money(sum((Decimal(str(line.line_total)) for line in lines), Decimal("0")))
    shipping = Decimal("0") if subtotal > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    tax = _money(subtotal * TAX_RATE) if include_tax else Decimal("0")
    total = subtotal + shipping + tax

    return OrderTotals(
        subtotal=float(subtotal),
        shipping=float(shipping),
        tax=float(tax),
        discount=0.0,
        total=float(_money(total)),
    )


def to_minor_units(amount: float) -> int:
    """Round half-up to the nearest cent/paise and express as an integer."""
    return int(_money(Decimal(str(amount))) * 100)


def snapshot_shipping_address(
    session: Session,
    user: User,
    address_id: Optional[int] = None,
    new_shipping_address: Optional[ShippingAddressCreate] = None,
) -> ShippingAddress:
    """
    Copy the recipient details into a new per-order row. Does not commit.
    """
    if new_shipping_address is not None:
        data = new_shipping_address
        shipping_address = ShippingAddress(
            user_id=user.id,
            ship_name=data.recipient_name,
            ship_phone=data.phone,
            ship_address=data.address,
            ship_city=data.city,
            ship_state=data.state,
            ship_zip=data.postal_code,
            notes=data.notes,
        )
    else:
        address = session.get(Address, address_id)
        if not address or address.user_id != user.id:
            raise NotFoundError("Address not found")

        shipping_address = ShippingAddress(
            user_id=user.id,
            ship_name=address.recipient_name,
            ship_phone=address.phone,
            ship_address=address.address,
            ship_city=address.city,
            ship_state=address.state,
            ship_zip=address.postal_code,
            notes=None,
        )

    session.add(shipping_address)
    session.flush()
    return shipping_address


def resolve_direct_lines(session: Session, items: List[OrderItemRequest]) -> List[LineItem]:
    """Price requested items from the live product rows and check stock."""
    quantities = {}
    for item in items:
        # one line per product, so the ledger gets one row per order line
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    products = session.exec(
        select(Product).where(Product.id.in_(list(quantities)))
    ).all()
    product_map = {p.id: p for p in products}

    lines = []
    for product_id, quantity in quantities.items():
        product = product_map.get(product_id)
        if not product:
            raise ProductNotFoundError(f"Product not found: {product_id}")
        if product.stock < quantity:
            raise InsufficientStockError(product.name, product.stock, quantity)

        lines.append(
            LineItem(
                product_id=product.id,
                product_name=product.name,
                unit_price=product.price,
                quantity=quantity,
                line_total=float(_money(Decimal(str(product.price)) * quantity)),
            )
        )
    return lines


def cart_lines(cart) -> List[LineItem]:
    if not cart.items:
        raise EmptyCartError()

    return [
        LineItem(
            product_id=item.product_id,
            product_name=item.product_name,
            unit_price=item.unit_price,
            quantity=item.quantity,
            line_total=item.total_price,
        )
        for item in cart.items
    ]


def create_order_records(
    session: Session,
    user: User,
    shipping_address: ShippingAddress,
    lines: List[LineItem],
    totals: OrderTotals,
    payment_mode: str = "cod",
) -> Order:
    """Order, item snapshots and amount snapshot. Does not commit."""
    order = Order(
        user_id=user.id,
        shipping_address_id=shipping_address.id,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
        payment_mode=payment_mode,
    )
    order.items = [
        OrderItem(
            product_id=line.product_id,
            product_name=line.product_name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
        )
        for line in lines
    ]
    order.amount = ShippingAmount(
        subtotal_amount=totals.subtotal,
        shipping_amount=totals.shipping,
        tax_amount=totals.tax,
        discount_amount=totals.discount,
        total_amount=totals.total,
    )
    session.add(order)
    session.flush()
    return order


def _take_stock_for_order(session: Session, order: Order, actor_id: int):
    for item in order.items:
        adjust_stock(
            session,
            item.product_id,
            -item.quantity,
            StockReason.ORDER_PLACED,
            actor_id,
            order_id=order.id,
        )


def place_order(
    session: Session,
    user: User,
    items: List[OrderItemRequest],
    address_id: Optional[int] = None,
    new_shipping_address: Optional[ShippingAddressCreate] = None,
) -> Order:
    """
    Place a cash-on-delivery order from an explicit item list.

    Address snapshot, order rows and stock decrements commit together; an
    out-of-stock line leaves no trace.
    """
    with transaction(session):
        shipping_address = snapshot_shipping_address(
            session, user, address_id, new_shipping_address
        )
        lines = resolve_direct_lines(session, items)
        totals = compute_totals(lines)

        order = create_order_records(session, user, shipping_address, lines, totals)
        _take_stock_for_order(session, order, user.id)

        log_order_event(
            session,
            order.id,
            "order_placed",
            f"Order #{order.id} placed",
            created_by=str(user.id),
            meta={"total": totals.total, "items": len(lines)},
        )

    session.refresh(order)
    logger.info(f"Order {order.id} placed by user {user.id} (total={order.amount.total_amount})")
    return order


def place_order_from_cart(
    session: Session,
    user: User,
    cart_id: int,
    address_id: Optional[int] = None,
    new_shipping_address: Optional[ShippingAddressCreate] = None,
) -> Order:
    cart = get_user_cart(session, cart_id, user.id)
    lines = cart_lines(cart)
    totals = compute_totals(lines)

    with transaction(session):
        shipping_address = snapshot_shipping_address(
            session, user, address_id, new_shipping_address
        )
        order = create_order_records(session, user, shipping_address, lines, totals)
        _take_stock_for_order(session, order, user.id)
        clear_cart(session, cart.id, user.id)

        log_order_event(
            session,
            order.id,
            "order_placed",
            f"Order #{order.id} placed from cart",
            created_by=str(user.id),
            meta={"total": totals.total, "cart_id": cart.id},
        )

    session.refresh(order)
    logger.info(f"Order {order.id} placed from cart {cart_id} by user {user.id}")
    return order


def get_order_for_viewer(session: Session, order_id: int, viewer: User) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    if viewer.role == "admin" or order.user_id == viewer.id:
        return order
    if order.delivery and order.delivery.delivery_partner_id == viewer.id:
        return order

    raise NotFoundError("Order not found")


def list_orders_query(user_id: Optional[int] = None, status: Optional[str] = None):
    query = select(Order)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    if status:
        query = query.where(Order.status == status)
    return query.order_by(Order.placed_at.desc(), Order.id.desc())
