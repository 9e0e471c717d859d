"""
Razorpay Gateway

Thin wrapper around the Razorpay SDK. The SDK is synchronous, so every
call runs in the thread pool. Routes receive the gateway through the
`get_payment_gateway` dependency, which tests override with a stub.
"""

import hashlib
import hmac
import logging

from fastapi.concurrency import run_in_threadpool

from learnhub.core.config import RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from learnhub.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str = None) -> bool:
    """HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the gateway secret"""
    secret = secret if secret is not None else RAZORPAY_KEY_SECRET
    if not secret or not signature:
        return False
    message = f"{order_id}|{payment_id}"
    generated_signature = hmac.new(
        secret.encode(),
        message.encode(),
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(generated_signature, signature)


class RazorpayGateway:
    def __init__(self, key_id: str = RAZORPAY_KEY_ID, key_secret: str = RAZORPAY_KEY_SECRET):
        # Imported here so the app starts without gateway credentials configured
        import razorpay

        self.key_id = key_id
        self.client = razorpay.Client(auth=(key_id, key_secret))

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        order_data = {
            "amount": amount,  # in paise
            "currency": currency,
            "receipt": receipt,
            "notes": notes
        }
        try:
            return await run_in_threadpool(self.client.order.create, data=order_data)
        except Exception as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise PaymentGatewayError(f"Could not create payment order: {e}") from e

    async def fetch_payment(self, payment_id: str) -> dict:
        try:
            return await run_in_threadpool(self.client.payment.fetch, payment_id)
        except Exception as e:
            logger.error(f"Razorpay payment fetch failed for {payment_id}: {e}")
            raise PaymentGatewayError(f"Invalid payment ID: {e}") from e

    async def fetch_order(self, order_id: str) -> dict:
        try:
            return await run_in_threadpool(self.client.order.fetch, order_id)
        except Exception as e:
            logger.error(f"Razorpay order fetch failed for {order_id}: {e}")
            raise PaymentGatewayError(f"Invalid order ID: {e}") from e


_gateway = None


def get_payment_gateway() -> RazorpayGateway:
    """Gateway dependency (one SDK client per process)"""
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway()
    return _gateway
