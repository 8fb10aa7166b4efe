from sqlmodel import select

from app.models import (
    Address,
    InventoryTransaction,
    Order,
    OrderItem,
    Product,
    ShippingAddress,
    ShippingAmount,
    StockReason,
)
from conftest import auth_headers

INLINE_ADDRESS = {
    "recipient_name": "Kiran Shah",
    "phone": "7777777777",
    "address": "9 Lake View",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
    "notes": "Leave at the gate",
}


def place(client, headers, items, **shipping):
    if not shipping:
        shipping = {"new_shipping_address": INLINE_ADDRESS}
    return client.post("/orders", json={"items": items, **shipping}, headers=headers)


def test_direct_order_takes_stock_and_snapshots_lines(client, customer_headers, db, seed, stock_of):
    res = place(client, customer_headers, [{"product_id": seed.widget, "quantity": 3}])
    assert res.status_code == 201, res.text

    order = res.json()["order"]
    assert order["status"] == "PENDING"
    assert order["payment_status"] == "UNPAID"
    assert order["payment_mode"] == "cod"
    assert order["items"] == [{
        "product_id": seed.widget,
        "product_name": "Widget",
        "unit_price": 20.0,
        "quantity": 3,
        "line_total": 60.0,
    }]

    assert stock_of(seed.widget) == 2

    rows = db.exec(select(InventoryTransaction)).all()
    assert len(rows) == 1
    assert rows[0].delta == -3
    assert rows[0].kind == StockReason.ORDER_PLACED
    assert rows[0].order_id == order["id"]
    assert rows[0].reason == f"Order #{order['id']} placed"


def test_direct_order_shipping_fee_below_threshold(client, customer_headers, seed):
    res = place(client, customer_headers, [{"product_id": seed.widget, "quantity": 3}])

    amount = res.json()["order"]["amount"]
    assert amount["subtotal_amount"] == 60.0
    assert amount["shipping_amount"] == 9.99
    assert amount["tax_amount"] == 0
    assert amount["total_amount"] == 69.99


def test_direct_order_free_shipping_above_threshold(client, customer_headers, seed):
    res = place(client, customer_headers, [{"product_id": seed.gizmo, "quantity": 1}])

    amount = res.json()["order"]["amount"]
    assert amount["shipping_amount"] == 0
    assert amount["total_amount"] == 150.0


def test_insufficient_stock_leaves_no_trace(client, customer_headers, db, seed, stock_of):
    res = place(client, customer_headers, [
        {"product_id": seed.gadget, "quantity": 1},
        {"product_id": seed.widget, "quantity": 10},
    ])

    assert res.status_code == 400
    assert res.json()["message"] == "Insufficient stock for product: Widget"

    assert stock_of(seed.widget) == 5
    assert stock_of(seed.gadget) == 10
    assert db.exec(select(Order)).all() == []
    assert db.exec(select(OrderItem)).all() == []
    assert db.exec(select(ShippingAmount)).all() == []
    assert db.exec(select(ShippingAddress)).all() == []
    assert db.exec(select(InventoryTransaction)).all() == []


def test_unknown_product_is_rejected(client, customer_headers, db):
    res = place(client, customer_headers, [{"product_id": 9999, "quantity": 1}])

    assert res.status_code == 404
    assert db.exec(select(Order)).all() == []


def test_duplicate_lines_are_merged(client, customer_headers, db, seed, stock_of):
    res = place(client, customer_headers, [
        {"product_id": seed.widget, "quantity": 1},
        {"product_id": seed.widget, "quantity": 2},
    ])
    assert res.status_code == 201

    items = res.json()["order"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 3
    assert stock_of(seed.widget) == 2
    assert len(db.exec(select(InventoryTransaction)).all()) == 1


def test_order_requires_items_and_address(client, customer_headers, seed):
    res = client.post(
        "/orders",
        json={"items": [], "address_id": seed.address},
        headers=customer_headers,
    )
    assert res.status_code == 400

    res = client.post(
        "/orders",
        json={"items": [{"product_id": seed.widget, "quantity": 1}]},
        headers=customer_headers,
    )
    assert res.status_code == 400

    res = client.post(
        "/orders",
        json={"items": [{"product_id": seed.widget, "quantity": 0}], "address_id": seed.address},
        headers=customer_headers,
    )
    assert res.status_code == 400


def test_saved_address_must_belong_to_customer(client, customer_headers, seed, stock_of):
    res = place(
        client,
        customer_headers,
        [{"product_id": seed.widget, "quantity": 1}],
        address_id=seed.other_address,
    )
    assert res.status_code == 404
    assert stock_of(seed.widget) == 5


def test_snapshots_do_not_follow_later_edits(client, customer_headers, db, seed):
    res = place(
        client,
        customer_headers,
        [{"product_id": seed.widget, "quantity": 1}],
        address_id=seed.address,
    )
    order_id = res.json()["order"]["id"]
    assert res.json()["order"]["shipping_address"]["ship_city"] == "Pune"

    address = db.get(Address, seed.address)
    address.city = "Mumbai"
    product = db.get(Product, seed.widget)
    product.price = 99.0
    db.add_all([address, product])
    db.commit()

    res = client.get(f"/orders/{order_id}", headers=customer_headers)
    order = res.json()["order"]
    assert order["shipping_address"]["ship_city"] == "Pune"
    assert order["items"][0]["unit_price"] == 20.0


def test_order_from_cart_clears_cart(client, customer_headers, fill_cart, db, seed, stock_of):
    cart_id = fill_cart((seed.widget, 2), (seed.gadget, 1))

    res = client.post(
        f"/orders/cart/{cart_id}/order",
        json={"address_id": seed.address},
        headers=customer_headers,
    )
    assert res.status_code == 201, res.text

    order = res.json()["order"]
    assert {i["product_id"]: i["quantity"] for i in order["items"]} == {
        seed.widget: 2,
        seed.gadget: 1,
    }
    assert order["amount"]["subtotal_amount"] == 90.0
    assert order["amount"]["total_amount"] == 99.99

    assert stock_of(seed.widget) == 3
    assert stock_of(seed.gadget) == 9

    cart = client.get("/cart", headers=customer_headers).json()["cart"]
    assert cart["items"] == []


def test_order_from_cart_out_of_stock_keeps_cart(client, customer_headers, fill_cart, db, seed, stock_of):
    cart_id = fill_cart((seed.gizmo, 4))

    res = client.post(
        f"/orders/cart/{cart_id}/order",
        json={"address_id": seed.address},
        headers=customer_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Insufficient stock for product: Gizmo"

    assert stock_of(seed.gizmo) == 3
    assert db.exec(select(Order)).all() == []
    cart = client.get("/cart", headers=customer_headers).json()["cart"]
    assert len(cart["items"]) == 1


def test_order_from_empty_cart(client, customer_headers, seed):
    cart_id = client.get("/cart", headers=customer_headers).json()["cart"]["id"]

    res = client.post(
        f"/orders/cart/{cart_id}/order",
        json={"address_id": seed.address},
        headers=customer_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Cart is empty"


def test_order_from_someone_elses_cart(client, fill_cart, seed):
    cart_id = fill_cart((seed.widget, 1))

    res = client.post(
        f"/orders/cart/{cart_id}/order",
        json={"address_id": seed.other_address},
        headers=auth_headers(seed.other_customer),
    )
    assert res.status_code == 404


def test_customer_order_listing_and_visibility(client, customer_headers, admin_headers, seed):
    first = place(client, customer_headers, [{"product_id": seed.widget, "quantity": 1}])
    second = place(client, customer_headers, [{"product_id": seed.gadget, "quantity": 1}])
    order_id = first.json()["order"]["id"]

    res = client.get("/orders", headers=customer_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["total_items"] == 2
    assert [o["id"] for o in body["results"]] == [
        second.json()["order"]["id"],
        order_id,
    ]

    res = client.get(f"/orders/{order_id}", headers=customer_headers)
    assert res.status_code == 200
    assert [e["event_type"] for e in res.json()["timeline"]] == ["order_placed"]

    assert client.get(f"/orders/{order_id}", headers=admin_headers).status_code == 200
    res = client.get(f"/orders/{order_id}", headers=auth_headers(seed.other_customer))
    assert res.status_code == 404


def test_only_customers_place_orders(client, admin_headers, seed):
    res = place(client, admin_headers, [{"product_id": seed.widget, "quantity": 1}])
    assert res.status_code == 403


def test_requests_without_token_are_rejected(client, seed):
    res = place(client, {}, [{"product_id": seed.widget, "quantity": 1}])
    assert res.status_code == 401
