"""
In-process stand-ins for the payment and delivery providers.
"""

from parcel_backend.app.core.exceptions import DeliveryProviderError
from parcel_backend.app.services.delivery_provider import CreatedJob
from parcel_backend.app.services.payment_provider import PaymentSession

PAYMENT_SALT = "test-salt"
DELIVERY_SECRET = "delivery-secret"


# Fake providers

class FakePaymentProvider:
    """Hands out deterministic payment URLs; set `error` to make it fail."""

    def __init__(self):
        self.requests = []
        self.error = None

    async def create_payment_request(self, order):
        self.requests.append(order.short_code)
        if self.error:
            raise self.error
        return PaymentSession(request_id=f"req-{order.short_code}", url=f"https://pay.test/{order.short_code}")


class FakeDeliveryProvider:
    """
    Records job creation calls per DO number.

    `failures[do_number]` is a list of exceptions raised by successive calls
    (the call succeeds once the list is used up); `always_fail` holds DO
    numbers that never succeed. `jobs` backs `get_job`.
    """

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.always_fail = {}
        self.jobs = {}
        self.lookup_error = None
        self._counter = 0

    def attempts_for(self, do_number):
        return sum(1 for payload in self.calls if payload["do_number"] == do_number)

    async def create_job(self, payload):
        do_number = payload["do_number"]
        self.calls.append(payload)
        if do_number in self.always_fail:
            raise self.always_fail[do_number]
        pending = self.failures.get(do_number)
        if pending:
            raise pending.pop(0)
        self._counter += 1
        job_id = f"job-{self._counter}"
        item_ids = [f"{job_id}-item-{i}" for i in range(len(payload["items"]))]
        return CreatedJob(job_id=job_id, item_ids=item_ids)

    async def get_job(self, do_number):
        if self.lookup_error:
            raise self.lookup_error
        return self.jobs.get(do_number)


def transient_error(message="Delivery provider returned 503"):
    return DeliveryProviderError(message, transient=True, upstream_status=503)


def rejected_error(message="Delivery provider returned 422"):
    return DeliveryProviderError(message, transient=False, upstream_status=422)


