from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"


class DeliveryStatus(str, Enum):
    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


# Orders only move forward through this list. CANCELLED sits last, so
# nothing moves out of it.
ORDER_STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
]

DELIVERY_TRANSITIONS = {
    DeliveryStatus.UNASSIGNED: [DeliveryStatus.ASSIGNED],
    DeliveryStatus.ASSIGNED: [DeliveryStatus.OUT_FOR_DELIVERY, DeliveryStatus.FAILED],
    DeliveryStatus.OUT_FOR_DELIVERY: [DeliveryStatus.DELIVERED, DeliveryStatus.FAILED],
    DeliveryStatus.DELIVERED: [],
    DeliveryStatus.FAILED: [],
}

DELIVERY_TO_ORDER_STATUS = {
    DeliveryStatus.UNASSIGNED: OrderStatus.PENDING,
    DeliveryStatus.ASSIGNED: OrderStatus.PROCESSING,
    DeliveryStatus.OUT_FOR_DELIVERY: OrderStatus.SHIPPED,
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
    DeliveryStatus.FAILED: OrderStatus.CANCELLED,
}


def can_advance_order(current: str, new: str) -> bool:
    return ORDER_STATUS_FLOW.index(OrderStatus(new)) > ORDER_STATUS_FLOW.index(OrderStatus(current))


def can_transition_delivery(current: str, new: str) -> bool:
    return DeliveryStatus(new) in DELIVERY_TRANSITIONS.get(DeliveryStatus(current), [])
