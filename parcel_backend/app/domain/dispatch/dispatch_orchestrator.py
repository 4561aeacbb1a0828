"""
Dispatch Orchestrator.

Creates delivery-provider jobs for a paid order: one job for a single
order, one job per parcel for a bulk order. Provider calls for a bulk order
run concurrently; results are written only after every call has settled,
so a partial failure leaves the successful parcels dispatched and records
the failed ones for retry.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.config import DeliveryProviderConfig, DispatchPolicy
from parcel_backend.app.core.exceptions import ResourceNotFoundError, OrderValidationError, DeliveryProviderError
from parcel_backend.app.core.reliability import call_with_retry, RetryExhaustedError
from parcel_backend.app.models.dlq import DispatchFailure, DLQStatus
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.order_enums import OrderStatus, DispatchStatus
from parcel_backend.app.schemas.dispatch import DispatchResult, DispatchOutcome, ParcelDispatchResult
from parcel_backend.app.services import order_repository
from parcel_backend.app.services.audit import log_event, AuditAction
from parcel_backend.app.services.delivery_provider import DeliveryProviderClient, CreatedJob, build_job_payload

logger = logging.getLogger(__name__)

DISPATCHABLE_STATUSES = (OrderStatus.PAID, OrderStatus.PROCESSING)


class _JobRequest:
    """One provider job to create, covering one or more parcels."""

    def __init__(self, do_number: str, parcels: Sequence[Parcel], payload: dict):
        self.do_number = do_number
        self.parcels = list(parcels)
        self.payload = payload
        self.job: Optional[CreatedJob] = None
        self.error: Optional[str] = None
        self.attempts = 0


class DispatchOrchestrator:
    def __init__(self, delivery_provider: DeliveryProviderClient, config: DeliveryProviderConfig,
                 policy: DispatchPolicy):
        self.delivery_provider = delivery_provider
        self.config = config
        self.policy = policy

    async def dispatch_order(self, db: AsyncSession, order_id: str) -> DispatchResult:
        """
        Create the missing delivery jobs of an order.

        Parcels that already carry a job id are reported as succeeded
        without calling the provider again.
        """
        order = await order_repository.get_order(db, order_id)
        if order is None:
            raise ResourceNotFoundError("Order", order_id)
        if order.status not in DISPATCHABLE_STATUSES:
            raise OrderValidationError(
                f"Order {order.short_code} cannot be dispatched in status {order.status.value}",
                details={"status": order.status.value},
            )

        parcels = list(await order_repository.list_parcels(db, order.id))
        if not parcels:
            raise OrderValidationError(f"Order {order.short_code} has no parcels")

        requests = self._plan(order, parcels)
        if requests:
            await asyncio.gather(*(self._create_job(request) for request in requests))

        # Fan-in: persist sequentially on the one session
        for request in requests:
            if request.job:
                self._record_job(order, request)
                await self._resolve_failures(db, request.parcels)
            else:
                await self._record_failure(db, order, request)

        order.dispatch_status = self._aggregate(parcels)
        await db.commit()

        result = self._result(order, parcels, requests)
        await self._audit(db, result)
        return result

    async def retry_undispatched(self, db: AsyncSession, limit: int = 100) -> List[DispatchResult]:
        """
        Re-run dispatch for every paid order whose dispatch is not complete.

        An order that raises is logged and skipped; the rest of the batch
        still runs. Only orders that produced a result are returned.
        """
        orders = await order_repository.list_orders_awaiting_dispatch(db, limit=limit)
        order_ids = [order.id for order in orders]
        logger.info("Retrying dispatch for %d order(s)", len(order_ids))

        results = []
        for order_id in order_ids:
            try:
                result = await self.dispatch_order(db, order_id)
            except Exception:
                logger.exception("Dispatch retry failed for order %s", order_id)
                await db.rollback()
                continue
            if not result.success:
                logger.warning("Dispatch retry for order %s incomplete: %s", order_id, result.message)
            results.append(result)
        return results

    def _plan(self, order: Order, parcels: List[Parcel]) -> List[_JobRequest]:
        if not order.is_bulk_order:
            if order.dispatch_job_id or parcels[0].dispatch_job_id:
                return []
            payload = build_job_payload(order, parcels[0], parcels, order.short_code, self.config)
            return [_JobRequest(order.short_code, parcels, payload)]

        requests = []
        for parcel in parcels:
            if parcel.dispatch_job_id:
                continue
            payload = build_job_payload(order, parcel, [parcel], parcel.short_code, self.config)
            requests.append(_JobRequest(parcel.short_code, [parcel], payload))
        return requests

    async def _create_job(self, request: _JobRequest) -> None:
        async def attempt() -> CreatedJob:
            request.attempts += 1
            return await self.delivery_provider.create_job(request.payload)

        try:
            request.job = await call_with_retry(
                attempt,
                max_attempts=self.policy.max_attempts,
                timeout_seconds=self.policy.timeout_seconds,
                backoff_seconds=self.policy.backoff_seconds,
                label=f"Delivery job {request.do_number}",
            )
        except RetryExhaustedError as e:
            request.error = str(e.last_error) or type(e.last_error).__name__
        except DeliveryProviderError as e:
            request.error = e.message

        if request.error:
            logger.error("Delivery job %s not created after %d attempt(s): %s",
                         request.do_number, request.attempts, request.error)

    def _record_job(self, order: Order, request: _JobRequest) -> None:
        job = request.job
        for position, parcel in enumerate(request.parcels):
            parcel.dispatch_job_id = job.job_id
            parcel.dispatch_reference = request.do_number
            if position < len(job.item_ids) and job.item_ids[position]:
                parcel.dispatch_item_id = str(job.item_ids[position])
        if not order.is_bulk_order:
            order.dispatch_job_id = job.job_id
            order.dispatch_reference = request.do_number

    async def _open_failure(self, db: AsyncSession, parcel_id: str) -> Optional[DispatchFailure]:
        result = await db.execute(
            select(DispatchFailure).where(
                DispatchFailure.parcel_id == parcel_id,
                DispatchFailure.status == DLQStatus.FAILED,
            )
        )
        return result.scalars().first()

    async def _record_failure(self, db: AsyncSession, order: Order, request: _JobRequest) -> None:
        now = datetime.now(timezone.utc)
        for parcel in request.parcels:
            failure = await self._open_failure(db, parcel.id)
            if failure:
                failure.retry_count += 1
                failure.last_retry_at = now
                failure.error_message = request.error
            else:
                db.add(DispatchFailure(
                    order_id=order.id,
                    parcel_id=parcel.id,
                    error_message=request.error,
                    status=DLQStatus.FAILED,
                    retry_count=0,
                ))

    async def _resolve_failures(self, db: AsyncSession, parcels: Sequence[Parcel]) -> None:
        now = datetime.now(timezone.utc)
        for parcel in parcels:
            failure = await self._open_failure(db, parcel.id)
            if failure:
                failure.status = DLQStatus.RESOLVED
                failure.resolved_at = now

    @staticmethod
    def _aggregate(parcels: Sequence[Parcel]) -> DispatchStatus:
        dispatched = sum(1 for p in parcels if p.dispatch_job_id)
        if dispatched == len(parcels):
            return DispatchStatus.DISPATCHED
        if dispatched:
            return DispatchStatus.PARTIALLY_DISPATCHED
        return DispatchStatus.NOT_DISPATCHED

    @staticmethod
    def _result(order: Order, parcels: Sequence[Parcel], requests: Sequence[_JobRequest]) -> DispatchResult:
        attempted = {p.id: r for r in requests for p in r.parcels}
        parcel_results = []
        for parcel in parcels:
            request = attempted.get(parcel.id)
            if request is None:
                parcel_results.append(ParcelDispatchResult(
                    parcel_id=parcel.id, success=True, job_id=parcel.dispatch_job_id, already_dispatched=True,
                ))
            else:
                parcel_results.append(ParcelDispatchResult(
                    parcel_id=parcel.id,
                    success=request.job is not None,
                    job_id=request.job.job_id if request.job else None,
                    attempts=request.attempts,
                    error=request.error,
                ))

        failed = [r.parcel_id for r in parcel_results if not r.success]
        job_ids = sorted({r.job_id for r in parcel_results if r.job_id})
        if not failed:
            outcome, message = DispatchOutcome.COMPLETE, "All parcels dispatched"
        elif len(failed) < len(parcel_results):
            outcome = DispatchOutcome.PARTIAL_FAILURE
            message = f"{len(parcel_results) - len(failed)} of {len(parcel_results)} parcels dispatched"
        else:
            outcome, message = DispatchOutcome.FAILED, "No parcels dispatched"

        return DispatchResult(
            order_id=order.id,
            outcome=outcome,
            job_ids=job_ids,
            failed_parcel_ids=failed,
            parcels=parcel_results,
            message=message,
        )

    @staticmethod
    async def _audit(db: AsyncSession, result: DispatchResult) -> None:
        action = {
            DispatchOutcome.COMPLETE: AuditAction.DISPATCH_COMPLETED,
            DispatchOutcome.PARTIAL_FAILURE: AuditAction.DISPATCH_PARTIAL_FAILURE,
            DispatchOutcome.FAILED: AuditAction.DISPATCH_FAILED,
        }[result.outcome]
        await log_event(
            db,
            action,
            order_id=result.order_id,
            metadata={"job_ids": result.job_ids, "failed_parcel_ids": result.failed_parcel_ids},
        )
