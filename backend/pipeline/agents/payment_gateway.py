"""
Payment Gateway - Razorpay
==========================
Two pieces of the gateway integration:
- SignatureVerifier: HMAC-SHA256 check of the checkout callback
  (order_id|payment_id), pure and side-effect free
- RazorpayGateway: order creation against the Razorpay Orders REST API,
  returning the descriptor the browser checkout needs

pip install httpx structlog
"""

import hashlib
import hmac
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx
import structlog

from config import settings
from pipeline.errors import GatewayError

logger = structlog.get_logger().bind(component="payment_gateway")


# =============================================================================
# SIGNATURE VERIFICATION
# =============================================================================

class SignatureVerifier:
    """Verifies the signature Razorpay attaches to a completed checkout."""

    def __init__(self, secret: Optional[str] = None):
        self.secret = secret if secret is not None else settings.RAZORPAY_SECRET
        if not self.secret:
            logger.warning("signature_secret_missing", effect="all signatures rejected")

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        message = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(self.secret.encode("utf-8"), message, hashlib.sha256).hexdigest()

    def verify(
        self,
        order_id: Optional[str],
        payment_id: Optional[str],
        signature: Optional[str],
    ) -> bool:
        if not self.secret or not order_id or not payment_id or not signature:
            return False
        expected = self.expected_signature(order_id, payment_id).encode("ascii")
        return hmac.compare_digest(expected, signature.encode("utf-8"))


# =============================================================================
# ORDER CREATION
# =============================================================================

def to_paise(amount) -> int:
    """Rupees to paise, rounded half-up."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RazorpayGateway:
    """
    Thin async client for the Razorpay Orders API.

    Example:
        gateway = RazorpayGateway()
        order = await gateway.create_order(Decimal("500"), "receipt_1700000000000")
        # order["id"] -> "order_..."
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.base_url = base_url or settings.RAZORPAY_API_URL
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                auth=(self.key_id or "", self.key_secret or ""),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def create_order(self, amount, receipt: str) -> Dict[str, Any]:
        payload = {
            "amount": to_paise(amount),
            "currency": settings.CURRENCY,
            "receipt": receipt,
            "payment_capture": 1,
        }
        try:
            response = await self._get_client().post("/v1/orders", json=payload)
        except httpx.HTTPError as e:
            logger.error("order_create_transport_error", receipt=receipt, error=str(e))
            raise GatewayError(f"order request failed: {e}", cause=e) from e

        if response.status_code >= 300:
            logger.error(
                "order_create_rejected",
                receipt=receipt,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise GatewayError(f"gateway returned {response.status_code}")

        try:
            order = response.json()
        except ValueError as e:
            raise GatewayError("gateway returned invalid JSON", cause=e) from e

        if not order.get("id"):
            raise GatewayError("gateway response has no order id")

        logger.info("order_created", order_id=order["id"], amount=payload["amount"], receipt=receipt)
        return order

    async def create_checkout(self, student: Dict[str, Any]) -> Dict[str, Any]:
        """Create an order and wrap it in the checkout descriptor for the client."""
        receipt = f"receipt_{int(time.time() * 1000)}"
        order = await self.create_order(student["amount"], receipt)
        amount = student["amount"]

        return {
            "order_id": order["id"],
            "key_id": self.key_id,
            "amount": to_paise(amount),
            "currency": settings.CURRENCY,
            "name": settings.MERCHANT_NAME,
            "description": f"Course Registration for {student['course']}",
            "student_info": {
                "name": student["name"],
                "email": student["email"],
                "phone": student["phone"],
                "course": student["course"],
                "amount": float(amount),
            },
            "prefill": {
                "name": student["name"],
                "email": student["email"],
                "contact": student["phone"],
            },
            "config": {
                "display": {
                    "blocks": {
                        "upi": {
                            "name": "Pay via UPI",
                            "instruments": [{"method": "upi"}],
                        }
                    },
                    "sequence": ["block.upi"],
                    "preferences": {"show_default_blocks": False},
                }
            },
            "modal": {"escape": False},
        }
