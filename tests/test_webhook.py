import pytest
from sqlmodel import select

from app.models import InventoryTransaction, Order, Payment, PaymentRecordStatus, StockReason
from conftest import auth_headers, sign_payment, sign_webhook, webhook_body


def post_webhook(client, body, signature=None):
    return client.post(
        "/orders/webhook",
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Razorpay-Signature": signature if signature is not None else sign_webhook(body),
        },
    )


@pytest.fixture
def session_data(open_session, seed):
    return open_session((seed.widget, 2))


def test_captured_event_finalizes_payment(client, session_data, db, seed, stock_of):
    body = webhook_body("payment.captured", session_data["provider_order"]["id"])

    res = post_webhook(client, body)
    assert res.status_code == 200
    assert res.json()["data"] == {"status": "processed", "payment_id": session_data["payment_id"]}

    payment = db.get(Payment, session_data["payment_id"])
    assert payment.status == PaymentRecordStatus.CAPTURED.value
    assert payment.provider_payment_id == "pay_Hook0001"
    assert payment.meta["source"] == "webhook"

    order = db.get(Order, session_data["order_id"])
    assert order.status == "CONFIRMED"
    assert order.payment_status == "PAID"

    assert stock_of(seed.widget) == 3
    row = db.exec(select(InventoryTransaction)).one()
    assert row.kind == StockReason.PAYMENT_CAPTURED
    assert row.created_by is None


@pytest.mark.parametrize("event", ["payment.authorized", "order.paid"])
def test_other_capture_events(client, session_data, event, stock_of, seed):
    body = webhook_body(event, session_data["provider_order"]["id"])

    res = post_webhook(client, body)
    assert res.json()["data"]["status"] == "processed"
    assert stock_of(seed.widget) == 3


def test_redelivered_event_is_processed_once(client, session_data, db, seed, stock_of):
    body = webhook_body("payment.captured", session_data["provider_order"]["id"])

    post_webhook(client, body)
    res = post_webhook(client, body)

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "already_processed"
    assert stock_of(seed.widget) == 3
    assert len(db.exec(select(InventoryTransaction)).all()) == 1


def test_webhook_after_client_verification(client, customer_headers, session_data, db, seed, stock_of):
    provider_order_id = session_data["provider_order"]["id"]
    res = client.post(
        "/orders/payment/validate",
        json={
            "payment_id": session_data["payment_id"],
            "order_id": session_data["order_id"],
            "razorpay_payment_id": "pay_Hook0001",
            "razorpay_order_id": provider_order_id,
            "razorpay_signature": sign_payment(provider_order_id, "pay_Hook0001"),
        },
        headers=customer_headers,
    )
    assert res.json()["message"] == "Payment verified successfully"

    res = post_webhook(client, webhook_body("payment.captured", provider_order_id))
    assert res.json()["data"]["status"] == "already_processed"

    assert stock_of(seed.widget) == 3
    assert len(db.exec(select(InventoryTransaction)).all()) == 1


def test_client_verification_after_webhook(client, customer_headers, session_data, db, seed, stock_of):
    provider_order_id = session_data["provider_order"]["id"]
    post_webhook(client, webhook_body("payment.captured", provider_order_id))

    res = client.post(
        "/orders/payment/validate",
        json={
            "payment_id": session_data["payment_id"],
            "order_id": session_data["order_id"],
            "razorpay_payment_id": "pay_Hook0001",
            "razorpay_order_id": provider_order_id,
            "razorpay_signature": sign_payment(provider_order_id, "pay_Hook0001"),
        },
        headers=customer_headers,
    )
    assert res.status_code == 200
    assert res.json()["message"] == "Payment already processed"

    assert stock_of(seed.widget) == 3
    assert len(db.exec(select(InventoryTransaction)).all()) == 1


def test_bad_signature_is_rejected(client, session_data, db, seed, stock_of):
    body = webhook_body("payment.captured", session_data["provider_order"]["id"])

    res = post_webhook(client, body, signature="deadbeef")
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid webhook signature"

    res = post_webhook(client, body, signature="")
    assert res.status_code == 400

    assert db.get(Payment, session_data["payment_id"]).status == PaymentRecordStatus.CREATED.value
    assert stock_of(seed.widget) == 5


def test_unknown_provider_order_is_acknowledged(client, session_data, db):
    res = post_webhook(client, webhook_body("payment.captured", "order_Unknown"))

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "ignored"
    assert db.get(Payment, session_data["payment_id"]).status == PaymentRecordStatus.CREATED.value


def test_unhandled_event_is_acknowledged(client, session_data):
    body = webhook_body("refund.processed", session_data["provider_order"]["id"])

    res = post_webhook(client, body)
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "ignored"


def test_malformed_body(client):
    res = post_webhook(client, b"not json")
    assert res.status_code == 400


def test_failed_event_marks_attempt_failed(client, session_data, db, seed, stock_of):
    body = webhook_body(
        "payment.failed",
        session_data["provider_order"]["id"],
        error_description="Card declined",
    )

    res = post_webhook(client, body)
    assert res.json()["data"]["status"] == "processed"

    payment = db.get(Payment, session_data["payment_id"])
    assert payment.status == PaymentRecordStatus.FAILED.value
    assert payment.meta["error"] == "Card declined"
    assert db.get(Order, session_data["order_id"]).payment_status == "UNPAID"
    assert stock_of(seed.widget) == 5


def test_failed_event_never_undoes_a_capture(client, session_data, db):
    provider_order_id = session_data["provider_order"]["id"]
    post_webhook(client, webhook_body("payment.captured", provider_order_id))

    res = post_webhook(client, webhook_body("payment.failed", provider_order_id))
    assert res.json()["data"]["status"] == "already_processed"
    assert db.get(Payment, session_data["payment_id"]).status == PaymentRecordStatus.CAPTURED.value


def test_capture_with_stock_gone_is_recorded(client, session_data, db, seed, stock_of):
    res = client.post(
        "/inventory/stock/reserve",
        json={"items": [{"product_id": seed.widget, "quantity": 4}]},
        headers=auth_headers(seed.admin),
    )
    assert res.status_code == 200

    res = post_webhook(client, webhook_body("payment.captured", session_data["provider_order"]["id"]))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "stock_unavailable"

    payment = db.get(Payment, session_data["payment_id"])
    assert payment.status == PaymentRecordStatus.CREATED.value
    assert "Widget" in payment.meta["capture_error"]
    assert db.get(Order, session_data["order_id"]).payment_status == "UNPAID"
    assert stock_of(seed.widget) == 1


def test_non_utf8_body_is_rejected_as_bad_signature(client, session_data, db):
    res = post_webhook(client, b"\xff\xfe{not utf8}", signature="deadbeef")

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid webhook signature"
    assert db.get(Payment, session_data["payment_id"]).status == PaymentRecordStatus.CREATED.value


def test_capture_after_cancel_flags_refund_and_keeps_stock(
    client, session_data, db, seed, stock_of
):
    res = client.put(
        f"/orders/admin/orders/{session_data['order_id']}/status",
        json={"status": "CANCELLED"},
        headers=auth_headers(seed.admin),
    )
    assert res.status_code == 200

    res = post_webhook(client, webhook_body("payment.captured", session_data["provider_order"]["id"]))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "processed"

    payment = db.get(Payment, session_data["payment_id"])
    assert payment.status == PaymentRecordStatus.CAPTURED.value
    assert payment.meta["refund_required"] is True
    assert payment.meta["source"] == "webhook"

    order = db.get(Order, session_data["order_id"])
    assert order.status == "CANCELLED"
    assert order.payment_status == "PAID"

    assert stock_of(seed.widget) == 5
    assert db.exec(select(InventoryTransaction)).all() == []

    # redelivery stays a no-op
    res = post_webhook(client, webhook_body("payment.captured", session_data["provider_order"]["id"]))
    assert res.json()["data"]["status"] == "already_processed"


def test_capture_for_deleted_order_is_acknowledged(client, session_data, db, seed, stock_of):
    res = client.delete(
        f"/orders/admin/orders/{session_data['order_id']}",
        headers=auth_headers(seed.admin),
    )
    assert res.status_code == 200

    res = post_webhook(client, webhook_body("payment.captured", session_data["provider_order"]["id"]))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "ignored"

    db.expire_all()
    assert db.get(Payment, session_data["payment_id"]).status == PaymentRecordStatus.CREATED.value
    assert stock_of(seed.widget) == 5


def test_capture_after_failure_keeps_payment_failed(client, session_data, db, seed, stock_of):
    provider_order_id = session_data["provider_order"]["id"]
    post_webhook(client, webhook_body("payment.failed", provider_order_id, provider_payment_id="pay_Declined"))

    res = post_webhook(client, webhook_body("payment.captured", provider_order_id))
    assert res.status_code == 200
    assert res.json()["data"]["status"] == "already_processed"

    db.expire_all()
    payment = db.get(Payment, session_data["payment_id"])
    assert payment.status == PaymentRecordStatus.FAILED.value
    assert payment.provider_payment_id == "pay_Declined"
    assert payment.meta["refund_required"] is True
    assert payment.meta["late_capture"]["provider_payment_id"] == "pay_Hook0001"
    assert db.get(Order, session_data["order_id"]).payment_status == "UNPAID"
    assert stock_of(seed.widget) == 5
    assert db.exec(select(InventoryTransaction)).all() == []


def test_client_cannot_verify_failed_attempt(client, customer_headers, session_data, db):
    provider_order_id = session_data["provider_order"]["id"]
    post_webhook(client, webhook_body("payment.failed", provider_order_id))

    res = client.post(
        "/orders/payment/validate",
        json={
            "payment_id": session_data["payment_id"],
            "order_id": session_data["order_id"],
            "razorpay_payment_id": "pay_Hook0001",
            "razorpay_order_id": provider_order_id,
            "razorpay_signature": sign_payment(provider_order_id, "pay_Hook0001"),
        },
        headers=customer_headers,
    )
    assert res.status_code == 400
    assert res.json()["message"] == "Payment attempt has failed"
