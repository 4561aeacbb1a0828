"""
Integration tests for booking: validation, server-side pricing and
transactional persistence.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func

from parcel_backend.app.core.exceptions import PaymentProviderError
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.audit_log import AuditLog
from parcel_backend.app.models.order_enums import OrderStatus


def recipient(postal_code="520123", **overrides):
    data = {
        "name": "Rita Recipient",
        "email": "rita@example.com",
        "contact_number": "+6581234567",
        "line1": "10 Tampines Street",
        "line2": "#05-01",
        "postal_code": postal_code,
    }
    data.update(overrides)
    return data


def single_order(amount="4.50", **order_overrides):
    order = {
        "sender_name": "Sam Sender",
        "sender_email": "sam@example.com",
        "sender_contact_number": "+6590000000",
        "sender_address": "1 Sender Road",
        "delivery_method": "atl",
        "amount": amount,
        "recipient": recipient(),
    }
    order.update(order_overrides)
    return {"order": order, "parcels": [{"weight_kg": 3}]}


def bulk_order(amount="30.60", recipients=None):
    return {
        "order": {
            "sender_name": "Sam Sender",
            "sender_email": "sam@example.com",
            "delivery_method": "atl",
            "amount": amount,
            "is_bulk_order": True,
        },
        "parcels": [{"weight_kg": 3}, {"weight_kg": 8}, {"weight_kg": 15}],
        "recipients": recipients if recipients is not None else [
            recipient("099010", parcel_index=2, name="Third"),
            recipient("078881", parcel_index=0, name="First"),
            recipient("520123", parcel_index=1, name="Second"),
        ],
    }


async def count(db_session, model):
    return (await db_session.execute(select(func.count()).select_from(model))).scalar()


async def test_create_single_order(client, db_session, payment_provider):
    response = await client.post("/v1/orders", json=single_order())

    assert response.status_code == 201
    body = response.json()
    assert body["short_code"].startswith("SPDY")
    assert body["payment_url"] == f"https://pay.test/{body['short_code']}"

    order = (await db_session.execute(select(Order).where(Order.id == body["order_id"]))).scalar_one()
    assert order.status == OrderStatus.PENDING
    assert order.amount == Decimal("4.50")
    assert order.payment_request_id == f"req-{order.short_code}"
    assert payment_provider.requests == [order.short_code]

    parcel = (await db_session.execute(select(Parcel).where(Parcel.order_id == order.id))).scalar_one()
    assert parcel.pricing_tier == "T1"
    assert parcel.short_code.startswith("SPDY")
    assert parcel.short_code != order.short_code
    assert parcel.recipient_postal_code == "520123"


async def test_price_mismatch_is_rejected_and_nothing_persisted(client, db_session, payment_provider):
    response = await client.post("/v1/orders", json=single_order(amount="4.52"))

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_PRICE_MISMATCH"
    assert body["message"] == "Invalid price calculation. Expected: $4.50"
    assert body["details"]["expected"] == "4.50"
    assert await count(db_session, Order) == 0
    assert await count(db_session, Parcel) == 0
    assert payment_provider.requests == []


async def test_one_cent_rounding_difference_is_accepted(client):
    response = await client.post("/v1/orders", json=single_order(amount="4.49"))

    assert response.status_code == 201


async def test_hand_to_hand_and_surcharge_are_priced(client):
    payload = single_order(amount="11.00", delivery_method="hand-to-hand")
    payload["order"]["recipient"] = recipient("078881")

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 201


async def test_restricted_area_in_full_address_is_surcharged(client, db_session):
    payload = single_order(amount="4.50")
    payload["order"]["recipient"] = recipient(line1="", line2=None, address="1 Paya Lebar Airbase Road")

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid price calculation. Expected: $19.50"
    assert await count(db_session, Order) == 0

    payload["order"]["amount"] = "19.50"
    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 201


async def test_create_bulk_order_matches_recipients_by_index(client, db_session):
    response = await client.post("/v1/orders", json=bulk_order())

    assert response.status_code == 201
    order_id = response.json()["order_id"]

    detail = await client.get(f"/v1/orders/{response.json()['short_code']}")
    assert detail.status_code == 200
    body = detail.json()
    assert body["is_bulk_order"] is True
    assert body["bulk_order"]["total_parcels"] == 3
    assert [p["recipient_name"] for p in body["parcels"]] == ["First", "Second", "Third"]
    assert [p["pricing_tier"] for p in body["parcels"]] == ["T1", "T2", "T3"]
    assert len({p["short_code"] for p in body["parcels"]}) == 3

    order = (await db_session.execute(select(Order).where(Order.id == order_id))).scalar_one()
    assert order.amount == Decimal("30.60")


async def test_bulk_order_needs_a_recipient_per_parcel(client, db_session):
    payload = bulk_order(recipients=[recipient(parcel_index=0), recipient(parcel_index=1)])

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_ORDER"
    assert await count(db_session, Order) == 0


async def test_bulk_order_rejects_duplicate_parcel_index(client):
    payload = bulk_order(recipients=[recipient(parcel_index=0), recipient(parcel_index=0), recipient(parcel_index=1)])

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 400


async def test_missing_recipient_field_is_rejected(client):
    payload = single_order()
    payload["order"]["recipient"] = recipient(email="")

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["details"]["missing"] == ["email"]


async def test_overweight_parcel_is_rejected(client):
    payload = single_order(amount="17.40")
    payload["parcels"] = [{"weight_kg": 31}]

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_VALIDATION_ORDER"


async def test_client_tier_fields_are_ignored(client, db_session):
    payload = single_order()
    payload["parcels"] = [{"weight_kg": 3, "pricing_tier": "T4", "price": "0.01"}]

    response = await client.post("/v1/orders", json=payload)

    assert response.status_code == 201
    parcel = (await db_session.execute(select(Parcel))).scalar_one()
    assert parcel.pricing_tier == "T1"
    assert parcel.price == Decimal("4.50")


async def test_schema_errors_are_422(client):
    response = await client.post("/v1/orders", json={"order": {"sender_name": "x"}, "parcels": []})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


async def test_payment_provider_failure_leaves_order_pending(client, db_session, payment_provider):
    payment_provider.error = PaymentProviderError("Payment provider returned 500", transient=True, upstream_status=500)

    response = await client.post("/v1/orders", json=single_order())

    assert response.status_code == 502
    assert response.json()["error_code"] == "ERR_PAYMENT_PROVIDER"
    order = (await db_session.execute(select(Order))).scalar_one()
    assert order.status == OrderStatus.PENDING
    assert order.payment_request_id is None


async def test_order_creation_is_audited(client, db_session):
    response = await client.post("/v1/orders", json=single_order())

    log = (await db_session.execute(select(AuditLog))).scalar_one()
    assert log.action == "ORDER_CREATED"
    assert log.order_id == response.json()["order_id"]


async def test_unknown_order_is_404(client):
    response = await client.get("/v1/orders/SPDY0000000000")

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"
