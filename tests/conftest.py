"""Pytest configuration for the storefront order API tests."""

import hashlib
import hmac
import json
import os
from types import SimpleNamespace

# Settings are read at import time, so the environment goes first.
os.environ.setdefault("ENV", "local")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.config import Settings
from app.database import create_db_and_tables, create_db_engine
from app.main import create_app
from app.models import Address, Category, Product, User
from app.services.payment_gateway import PaymentGateway
from app.utils.token import create_access_token

KEY_ID = "rzp_test_key"
KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"


class FakeGateway(PaymentGateway):
    """
    Real Razorpay signature checks, canned network calls.
    """

    def __init__(self):
        super().__init__(KEY_ID, KEY_SECRET, WEBHOOK_SECRET)
        self.created_orders = []
        self.payment_statuses = {}
        self.fail_create = False
        self.fail_fetch = False

    def create_order(self, amount, currency, receipt, notes=None):
        if self.fail_create:
            raise ConnectionError("Gateway timeout")
        order = {
            "id": f"order_Test{len(self.created_orders) + 1:04d}",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes or {},
        }
        self.created_orders.append(order)
        return order

    def fetch_payment(self, provider_payment_id):
        if self.fail_fetch:
            raise ConnectionError("Gateway timeout")
        return {
            "id": provider_payment_id,
            "entity": "payment",
            "status": self.payment_statuses.get(provider_payment_id, "captured"),
        }


def sign_payment(provider_order_id: str, provider_payment_id: str) -> str:
    message = f"{provider_order_id}|{provider_payment_id}".encode()
    return hmac.new(KEY_SECRET.encode(), message, hashlib.sha256).hexdigest()


def sign_webhook(body: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()


def webhook_body(event: str, provider_order_id: str, provider_payment_id: str = "pay_Hook0001", **entity) -> bytes:
    payload = {
        "entity": "event",
        "event": event,
        "payload": {
            "payment": {
                "entity": {
                    "id": provider_payment_id,
                    "order_id": provider_order_id,
                    "status": "failed" if event == "payment.failed" else "captured",
                    **entity,
                }
            }
        },
    }
    return json.dumps(payload).encode()


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seed(db):
    customer = User(first_name="Asha", last_name="Rao", email="asha@example.com", role="customer")
    other_customer = User(first_name="Ben", last_name="Ode", email="ben@example.com", role="customer")
    admin = User(first_name="Ada", last_name="Min", email="admin@example.com", role="admin")
    courier = User(first_name="Ravi", last_name="Das", email="ravi@example.com", role="delivery")
    other_courier = User(first_name="Mo", last_name="Lee", email="mo@example.com", role="delivery")
    category = Category(name="Hardware")
    db.add_all([customer, other_customer, admin, courier, other_courier, category])
    db.commit()

    widget = Product(name="Widget", price=20.0, stock=5, category_id=category.id)
    gadget = Product(name="Gadget", price=50.0, stock=10, category_id=category.id)
    gizmo = Product(name="Gizmo", price=150.0, stock=3, category_id=category.id)
    db.add_all([widget, gadget, gizmo])

    address = Address(
        user_id=customer.id,
        recipient_name="Asha Rao",
        phone="9999999999",
        address="12 MG Road",
        city="Pune",
        state="MH",
        postal_code="411001",
    )
    other_address = Address(
        user_id=other_customer.id,
        recipient_name="Ben Ode",
        phone="8888888888",
        address="4 Park Street",
        city="Kolkata",
        state="WB",
        postal_code="700016",
    )
    db.add_all([address, other_address])
    db.commit()

    return SimpleNamespace(
        customer=customer.id,
        other_customer=other_customer.id,
        admin=admin.id,
        courier=courier.id,
        other_courier=other_courier.id,
        widget=widget.id,
        gadget=gadget.id,
        gizmo=gizmo.id,
        address=address.id,
        other_address=other_address.id,
        initial_stock={widget.id: 5, gadget.id: 10, gizmo.id: 3},
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(engine, gateway, seed):
    settings = Settings(
        ENV="local",
        database_url_override="sqlite://",
        razorpay_key_id=KEY_ID,
        razorpay_key_secret=KEY_SECRET,
        razorpay_webhook_secret=WEBHOOK_SECRET,
        log_level="WARNING",
    )
    app = create_app(settings)
    app.state.engine = engine
    app.state.payment_gateway = gateway

    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user_id: int) -> dict:
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(seed):
    return auth_headers(seed.customer)


@pytest.fixture
def admin_headers(seed):
    return auth_headers(seed.admin)


@pytest.fixture
def courier_headers(seed):
    return auth_headers(seed.courier)


@pytest.fixture
def fill_cart(client, customer_headers):
    """Put ``(product_id, quantity)`` pairs in the customer's cart; returns the cart id."""

    def _fill(*lines):
        for product_id, quantity in lines:
            res = client.post(
                "/cart/add",
                json={"product_id": product_id, "quantity": quantity},
                headers=customer_headers,
            )
            assert res.status_code == 200, res.text
        return client.get("/cart", headers=customer_headers).json()["cart"]["id"]

    return _fill


@pytest.fixture
def open_session(client, customer_headers, seed, fill_cart):
    """Open a payment session for the given cart lines; returns the response data."""

    def _open(*lines):
        cart_id = fill_cart(*lines)
        res = client.post(
            "/orders/payment/place",
            json={"cart_id": cart_id, "address_id": seed.address},
            headers=customer_headers,
        )
        assert res.status_code == 201, res.text
        return {**res.json()["data"], "cart_id": cart_id}

    return _open


@pytest.fixture
def stock_of(db):
    """Current stock straight from the database."""

    def _stock(product_id):
        db.expire_all()
        return db.get(Product, product_id).stock

    return _stock
