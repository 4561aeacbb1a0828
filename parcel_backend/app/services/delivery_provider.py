"""
Delivery Provider client (Detrack-style jobs API).

Builds job payloads from orders and parcels and maps transport and HTTP
failures onto DeliveryProviderError, flagging which ones are worth retrying.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Sequence
import httpx

from parcel_backend.app.core.config import DeliveryProviderConfig
from parcel_backend.app.core.exceptions import DeliveryProviderError
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.order_enums import DeliveryMethod

logger = logging.getLogger(__name__)

SINGAPORE_TZ = timezone(timedelta(hours=8))


@dataclass(frozen=True)
class CreatedJob:
    job_id: str
    item_ids: List[Optional[str]] = field(default_factory=list)


def build_job_payload(
    order: Order,
    recipient: Parcel,
    parcels: Sequence[Parcel],
    do_number: str,
    config: DeliveryProviderConfig,
    job_date: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Delivery job for `parcels`, addressed to `recipient`'s recipient.

    Single orders send one job holding the order's parcel; bulk orders send
    one job per parcel, with the parcel short code as DO and tracking number.
    """
    job_date = job_date or datetime.now(SINGAPORE_TZ)
    hand_to_hand = order.delivery_method == DeliveryMethod.HAND_TO_HAND

    return {
        "type": "Delivery",
        "do_number": do_number,
        "date": job_date.strftime("%Y-%m-%d"),
        "group_name": config.group_name,
        "order_number": order.short_code,
        "tracking_number": do_number,
        # Recipient
        "deliver_to_collect_from": recipient.recipient_name,
        "phone_number": recipient.recipient_contact_number,
        "notify_email": recipient.recipient_email,
        "address": recipient.recipient_address,
        "address_1": recipient.recipient_line1 or recipient.recipient_address,
        "address_2": recipient.recipient_line2 or "",
        "postal_code": recipient.recipient_postal_code or "",
        "city": "Singapore",
        "state": "Singapore",
        "country": "Singapore",
        # Sender
        "pick_up_from": order.sender_name,
        "pick_up_address": order.sender_address,
        "pick_up_contact": order.sender_contact_number,
        "pick_up_email": order.sender_email,
        "sender_name": order.sender_name,
        "sender_phone_number": order.sender_contact_number,
        # Parcel
        "weight": recipient.weight_kg,
        "parcel_length": recipient.length_cm,
        "parcel_width": recipient.width_cm,
        "parcel_height": recipient.height_cm,
        "instructions": f"Delivery Method: {'Hand to Hand' if hand_to_hand else 'Authorized to Leave'}",
        "service_type": "Premium" if hand_to_hand else "Standard",
        "webhook_url": config.webhook_url,
        "items": [
            {
                "description": f"Parcel {p.parcel_index + 1}",
                "quantity": 1,
                "weight": p.weight_kg,
                "sku": p.short_code,
                "comments": f"For: {p.recipient_name}",
            }
            for p in parcels
        ],
    }


class DeliveryProviderClient:
    """Creates and looks up delivery jobs. Transport is injectable for tests."""

    def __init__(self, config: DeliveryProviderConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=self.config.timeout_seconds,
            headers={"X-API-KEY": self.config.api_key, "Content-Type": "application/json"},
        )

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise DeliveryProviderError(f"Delivery provider timed out: {e}", transient=True)
        except httpx.HTTPError as e:
            raise DeliveryProviderError(f"Delivery provider unreachable: {e}", transient=True)

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.status_code < 400:
            return
        raise DeliveryProviderError(
            f"{action} failed with {response.status_code}: {response.text[:200]}",
            transient=response.status_code >= 500,
            upstream_status=response.status_code,
        )

    async def create_job(self, job: Dict[str, Any]) -> CreatedJob:
        """
        Create a delivery job. A 2xx response without a job id is treated as
        a non-retryable failure.
        """
        response = await self._send("POST", self.config.api_url, json={"data": job})
        self._raise_for_status(response, f"Job creation for {job.get('do_number')}")

        try:
            data = response.json().get("data") or {}
        except (ValueError, AttributeError):
            data = {}

        job_id = data.get("id")
        if not job_id:
            raise DeliveryProviderError(
                f"Job creation for {job.get('do_number')} returned no job id",
                upstream_status=response.status_code,
            )
        item_ids = [item.get("id") for item in data.get("items") or []]
        logger.info("Created delivery job %s for %s", job_id, job.get("do_number"))
        return CreatedJob(job_id=str(job_id), item_ids=item_ids)

    async def get_job(self, do_number: str) -> Optional[Dict[str, Any]]:
        """Current job state by DO number, or None if the provider has no such job."""
        response = await self._send("GET", f"{self.config.api_url.rstrip('/')}/{do_number}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"Job lookup for {do_number}")

        try:
            return response.json().get("data")
        except (ValueError, AttributeError):
            raise DeliveryProviderError(f"Job lookup for {do_number} returned an unreadable response",
                                        upstream_status=response.status_code)
