"""
Integration tests for the payment webhook: signature checks, the
PENDING → PAID transition and the hand-off to dispatch.
"""

from sqlalchemy import select

from parcel_backend.app.models.audit_log import AuditLog
from parcel_backend.app.models.dlq import DispatchFailure
from parcel_backend.app.models.order_enums import OrderStatus, DispatchStatus
from parcel_backend.app.services import order_repository
from parcel_backend.app.services.webhook_signatures import payment_signature
from parcel_backend.tests.fakes import PAYMENT_SALT, rejected_error


def signed(fields, salt=PAYMENT_SALT):
    return {**fields, "hmac": payment_signature(fields, salt)}


def payment_fields(reference, status="completed"):
    return {
        "payment_id": "pay-123",
        "payment_request_id": "req-123",
        "reference_number": reference,
        "status": status,
        "amount": "4.50",
        "currency": "SGD",
    }


async def reload_order(db_session, order_id):
    return await order_repository.get_order(db_session, order_id)


async def test_completed_payment_marks_order_paid_and_dispatches(client, db_session, order_factory, delivery_provider):
    order = await order_factory(status=OrderStatus.PENDING)

    response = await client.post("/v1/webhooks/payment", data=signed(payment_fields(order.short_code)))

    assert response.status_code == 200
    assert response.json()["success"] is True
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PAID
    assert order.payment_id == "pay-123"
    assert all(p.status == OrderStatus.PAID for p in order.parcels)
    assert order.dispatch_status == DispatchStatus.DISPATCHED
    assert order.dispatch_job_id == "job-1"
    assert order.dispatch_reference == order.short_code
    assert len(delivery_provider.calls) == 1


async def test_replayed_webhook_transitions_once(client, db_session, order_factory, delivery_provider):
    order = await order_factory(status=OrderStatus.PENDING)
    body = signed(payment_fields(order.short_code))

    first = await client.post("/v1/webhooks/payment", data=body)
    second = await client.post("/v1/webhooks/payment", data=body)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["message"] == "Already processed"
    assert len(delivery_provider.calls) == 1
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PAID


async def test_conditional_update_only_wins_once(db_session, order_factory):
    order = await order_factory(status=OrderStatus.PENDING)

    first = await order_repository.mark_order_paid(db_session, order.id, "pay-1", "completed")
    second = await order_repository.mark_order_paid(db_session, order.id, "pay-2", "completed")
    await db_session.commit()

    assert (first, second) == (True, False)
    order = await reload_order(db_session, order.id)
    assert order.payment_id == "pay-1"


async def test_invalid_signature_is_rejected(client, db_session, order_factory):
    order = await order_factory(status=OrderStatus.PENDING)
    body = signed(payment_fields(order.short_code), salt="wrong-salt")

    response = await client.post("/v1/webhooks/payment", data=body)

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_WEBHOOK_SIGNATURE"
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PENDING


async def test_tampered_field_is_rejected(client, order_factory):
    order = await order_factory(status=OrderStatus.PENDING)
    body = signed(payment_fields(order.short_code))
    body["amount"] = "0.01"

    response = await client.post("/v1/webhooks/payment", data=body)

    assert response.status_code == 400


async def test_missing_signature_is_rejected(client, order_factory):
    order = await order_factory(status=OrderStatus.PENDING)

    response = await client.post("/v1/webhooks/payment", data=payment_fields(order.short_code))

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_WEBHOOK_SIGNATURE"


async def test_missing_reference_is_malformed(client):
    fields = payment_fields("SPDY0000000001")
    del fields["reference_number"]

    response = await client.post("/v1/webhooks/payment", data=signed(fields))

    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_WEBHOOK_PAYLOAD"


async def test_unknown_reference_is_acknowledged(client, delivery_provider):
    response = await client.post("/v1/webhooks/payment", data=signed(payment_fields("SPDY4040404040")))

    assert response.status_code == 200
    assert response.json()["message"] == "Unknown reference"
    assert delivery_provider.calls == []


async def test_other_payment_statuses_are_only_recorded(client, db_session, order_factory, delivery_provider):
    order = await order_factory(status=OrderStatus.PENDING)

    response = await client.post("/v1/webhooks/payment", data=signed(payment_fields(order.short_code, "failed")))

    assert response.status_code == 200
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == "failed"
    assert delivery_provider.calls == []


async def test_late_status_does_not_overwrite_confirmed_payment(client, db_session, order_factory):
    order = await order_factory(status=OrderStatus.PENDING)
    await client.post("/v1/webhooks/payment", data=signed(payment_fields(order.short_code)))

    late = payment_fields(order.short_code, "pending")
    del late["payment_id"]
    response = await client.post("/v1/webhooks/payment", data=signed(late))

    assert response.status_code == 200
    assert response.json()["message"] == "Already processed"
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PAID
    assert order.payment_status == "completed"
    assert order.payment_id == "pay-123"


async def test_dispatch_failure_still_acknowledges_payment(client, db_session, order_factory, delivery_provider):
    order = await order_factory(status=OrderStatus.PENDING)
    delivery_provider.always_fail[order.short_code] = rejected_error()

    response = await client.post("/v1/webhooks/payment", data=signed(payment_fields(order.short_code)))

    assert response.status_code == 200
    order = await reload_order(db_session, order.id)
    assert order.status == OrderStatus.PAID
    assert order.dispatch_status == DispatchStatus.NOT_DISPATCHED
    failures = (await db_session.execute(select(DispatchFailure))).scalars().all()
    assert [f.parcel_id for f in failures] == [order.parcels[0].id]


async def test_rejected_webhook_is_audited(client, db_session):
    body = signed(payment_fields("SPDY0000000001"), salt="wrong-salt")

    await client.post("/v1/webhooks/payment", data=body)

    log = (await db_session.execute(select(AuditLog))).scalar_one()
    assert log.action == "WEBHOOK_REJECTED"
    assert log.meta_data["reference_number"] == "SPDY0000000001"
