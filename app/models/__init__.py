from app.models.user import User
from app.models.category import Category
from app.models.product import Product
from app.models.inventory_transaction import InventoryTransaction, StockReason
from app.models.address import Address
from app.models.shipping_address import ShippingAddress
from app.models.cart import Cart, CartItem
from app.models.order_item import OrderItem
from app.models.shipping_amount import ShippingAmount
from app.models.delivery import Delivery
from app.models.order_event import OrderEvent
from app.models.order import Order
from app.models.payment import Payment, PaymentRecordStatus

# add ALL models here
