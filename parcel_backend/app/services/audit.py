"""
Audit logging service for fulfillment events.

Provides a persistent trail of what happened to each order, independent
of the application log.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    ORDER_CREATED = "ORDER_CREATED"

    # Payment webhook
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_STATUS_RECORDED = "PAYMENT_STATUS_RECORDED"

    # Dispatch orchestrator
    DISPATCH_COMPLETED = "DISPATCH_COMPLETED"
    DISPATCH_PARTIAL_FAILURE = "DISPATCH_PARTIAL_FAILURE"
    DISPATCH_FAILED = "DISPATCH_FAILED"

    # Delivery webhook
    DELIVERY_STATUS_UPDATED = "DELIVERY_STATUS_UPDATED"

    WEBHOOK_REJECTED = "WEBHOOK_REJECTED"


class AuditActor:
    CUSTOMER = "customer"
    PAYMENT_PROVIDER = "payment_provider"
    DELIVERY_PROVIDER = "delivery_provider"
    SYSTEM = "system"


async def log_event(
    db: AsyncSession,
    action: str,
    order_id: Optional[str] = None,
    actor: str = AuditActor.SYSTEM,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Record a fulfillment event in the audit log.

    Args:
        db: Database session
        action: Action being recorded (use AuditAction constants)
        order_id: Internal id of the order concerned, if known
        actor: Who triggered the event (use AuditActor constants)
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        order_id=order_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log
