"""
Service dependencies for FastAPI.

Provider configuration comes from the settings object once; services get
their clients and config objects injected here, and tests override these
providers with fakes.
"""

from functools import lru_cache
from fastapi import Depends

from parcel_backend.app.core.config import settings, PaymentProviderConfig, DeliveryProviderConfig, DispatchPolicy
from parcel_backend.app.domain.dispatch.dispatch_orchestrator import DispatchOrchestrator
from parcel_backend.app.domain.orders.order_service import OrderCreationService
from parcel_backend.app.domain.tracking.status_query import StatusQueryService
from parcel_backend.app.domain.webhooks.delivery_webhook import DeliveryWebhookHandler
from parcel_backend.app.domain.webhooks.payment_webhook import PaymentWebhookHandler
from parcel_backend.app.services.delivery_provider import DeliveryProviderClient
from parcel_backend.app.services.payment_provider import PaymentProviderClient


@lru_cache
def get_payment_config() -> PaymentProviderConfig:
    return settings.payment_provider()


@lru_cache
def get_delivery_config() -> DeliveryProviderConfig:
    return settings.delivery_provider()


@lru_cache
def get_dispatch_policy() -> DispatchPolicy:
    return settings.dispatch_policy()


def get_payment_client(config: PaymentProviderConfig = Depends(get_payment_config)) -> PaymentProviderClient:
    return PaymentProviderClient(config)


def get_delivery_client(config: DeliveryProviderConfig = Depends(get_delivery_config)) -> DeliveryProviderClient:
    return DeliveryProviderClient(config)


def get_order_service(
    client: PaymentProviderClient = Depends(get_payment_client),
    config: PaymentProviderConfig = Depends(get_payment_config),
) -> OrderCreationService:
    return OrderCreationService(client, config)


def get_dispatch_orchestrator(
    client: DeliveryProviderClient = Depends(get_delivery_client),
    config: DeliveryProviderConfig = Depends(get_delivery_config),
    policy: DispatchPolicy = Depends(get_dispatch_policy),
) -> DispatchOrchestrator:
    return DispatchOrchestrator(client, config, policy)


def get_payment_webhook_handler(
    config: PaymentProviderConfig = Depends(get_payment_config),
    orchestrator: DispatchOrchestrator = Depends(get_dispatch_orchestrator),
) -> PaymentWebhookHandler:
    return PaymentWebhookHandler(config, orchestrator)


def get_delivery_webhook_handler(
    config: DeliveryProviderConfig = Depends(get_delivery_config),
) -> DeliveryWebhookHandler:
    return DeliveryWebhookHandler(config)


def get_status_query_service(
    client: DeliveryProviderClient = Depends(get_delivery_client),
) -> StatusQueryService:
    return StatusQueryService(client)
