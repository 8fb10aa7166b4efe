import logging
from typing import Any, Dict, Optional

import razorpay
from fastapi import Request

from app.config import Settings

logger = logging.getLogger(__name__)


class PaymentGateway:
    """
    Thin wrapper around the Razorpay client.

    Built once at startup and handed to the payment services, so tests can
    swap the network calls without touching module state.
    """

    name = "razorpay"

    def __init__(self, key_id: str, key_secret: str, webhook_secret: Optional[str] = None):
        self.key_id = key_id
        self.webhook_secret = webhook_secret or key_secret
        self.client = razorpay.Client(auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGateway":
        return cls(
            settings.razorpay_key_id,
            settings.razorpay_key_secret,
            settings.webhook_secret,
        )

    def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        logger.info(f"Creating provider order: receipt={receipt} amount={amount} {currency}")
        return self.client.order.create(
            {
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            }
        )

    def fetch_payment(self, provider_payment_id: str) -> Dict[str, Any]:
        return self.client.payment.fetch(provider_payment_id)

    def verify_payment_signature(
        self,
        provider_order_id: str,
        provider_payment_id: str,
        signature: str,
    ) -> bool:
        """HMAC-SHA256 of ``order_id|payment_id`` with the key secret."""
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": provider_order_id,
                "razorpay_payment_id": provider_payment_id,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def verify_webhook_signature(self, body: str, signature: Optional[str]) -> bool:
        """HMAC-SHA256 of the raw request body with the webhook secret."""
        if not signature:
            return False
        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            return False
        return True


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway
