"""
Webhook payload schemas.

Each provider's body is validated into one of these models at the HTTP
boundary; nothing past the handlers sees a raw dict.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class PaymentWebhookPayload(BaseModel):
    """Form-encoded HitPay payment webhook."""
    model_config = ConfigDict(extra="allow")

    payment_id: Optional[str] = None
    payment_request_id: Optional[str] = None
    status: str = Field(..., min_length=1)
    reference_number: str = Field(..., min_length=1, description="Order short code")
    amount: Optional[str] = None
    currency: Optional[str] = None
    hmac: str = Field(..., min_length=1)


class DeliveryJobItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    status: Optional[str] = None


class DeliveryJobData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(None, description="Provider job id")
    do_number: str = Field(..., min_length=1, description="Reference the job was created with")
    status: Optional[str] = None
    tracking_status: Optional[str] = None
    items: List[DeliveryJobItem] = Field(default_factory=list)


class DeliveryWebhookPayload(BaseModel):
    """JSON Detrack job webhook: {"data": {...}}."""
    model_config = ConfigDict(extra="allow")

    data: DeliveryJobData


class WebhookAck(BaseModel):
    success: bool = True
    message: Optional[str] = None
