"""
Payment Provider client (HitPay-style hosted payment requests).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any
import httpx

from parcel_backend.app.core.config import PaymentProviderConfig
from parcel_backend.app.core.exceptions import PaymentProviderError
from parcel_backend.app.models.order import Order

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ["paynow_online", "card"]


@dataclass(frozen=True)
class PaymentSession:
    request_id: Optional[str]
    url: str


def build_payment_request(order: Order, config: PaymentProviderConfig) -> Dict[str, Any]:
    """Payment request body; `reference_number` carries the order short code."""
    return {
        "amount": f"{order.amount:.2f}",
        "currency": config.currency,
        "payment_methods": PAYMENT_METHODS,
        "email": order.sender_email,
        "name": order.sender_name,
        "phone": order.sender_contact_number or "",
        "reference_number": order.short_code,
        "redirect_url": f"{config.success_url}?orderId={order.id}",
        "webhook": config.webhook_url,
        "purpose": f"Speedy Xpress Delivery - Order {order.short_code}",
        "allow_repeated_payments": False,
        "send_email": True,
        "send_sms": False,
    }


class PaymentProviderClient:
    """Creates hosted payment sessions. Transport is injectable for tests."""

    def __init__(self, config: PaymentProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout_seconds: float = 30.0):
        self.config = config
        self.transport = transport
        self.timeout_seconds = timeout_seconds

    def _headers(self) -> Dict[str, str]:
        return {
            "X-BUSINESS-API-KEY": self.config.api_key,
            "X-Requested-With": "XMLHttpRequest",
            "Content-Type": "application/json",
        }

    async def create_payment_request(self, order: Order) -> PaymentSession:
        if self.config.mock_payment:
            logger.info("Mock payment enabled, skipping provider for order %s", order.short_code)
            return PaymentSession(request_id=None, url=f"{self.config.success_url}?orderId={order.id}")

        body = build_payment_request(order, self.config)
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout_seconds) as client:
                response = await client.post(self.config.api_url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise PaymentProviderError(f"Payment provider timed out: {e}", transient=True)
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Payment provider unreachable: {e}", transient=True)

        if response.status_code >= 400:
            logger.error("Payment request for %s rejected: %s %s",
                         order.short_code, response.status_code, response.text)
            raise PaymentProviderError(
                f"Payment provider returned {response.status_code}",
                transient=response.status_code >= 500,
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise PaymentProviderError("Payment provider returned an unreadable response",
                                       upstream_status=response.status_code)

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise PaymentProviderError("Payment provider response has no payment URL",
                                       upstream_status=response.status_code)

        return PaymentSession(request_id=data.get("id"), url=url)
