"""
Identifier Resolver.

Every order and parcel has two identifiers: a UUID used internally and a
short tracking code (`SPDY` + 10 digits) shown to customers. All external
input goes through this module; services below it accept internal ids only.
"""

import re
import secrets
import uuid
import logging
from dataclasses import dataclass
from typing import Optional, Iterable
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import ShortCodeExhaustedError
from parcel_backend.app.services import order_repository

logger = logging.getLogger(__name__)

SHORT_CODE_PREFIX = "SPDY"
SHORT_CODE_DIGITS = 10
MAX_SHORT_CODE_ATTEMPTS = 10

_SHORT_CODE_RE = re.compile(rf"^{SHORT_CODE_PREFIX}\d{{{SHORT_CODE_DIGITS}}}$")


@dataclass(frozen=True)
class ResolvedIdentifier:
    kind: str  # "order" | "parcel"
    internal_id: str
    order_id: str


def normalize_short_code(value: str) -> Optional[str]:
    """Upper-cased short code, or None if `value` is not in short-code format."""
    candidate = (value or "").strip().upper()
    return candidate if _SHORT_CODE_RE.match(candidate) else None


def normalize_internal_id(value: str) -> Optional[str]:
    """Canonical hyphenated UUID string, or None if `value` is not a UUID."""
    try:
        return str(uuid.UUID((value or "").strip()))
    except ValueError:
        return None


def is_short_code(value: str) -> bool:
    return normalize_short_code(value) is not None


async def resolve(db: AsyncSession, value: str) -> Optional[ResolvedIdentifier]:
    """
    Resolve a customer-facing identifier.

    Order of precedence: parcel short code, order short code, order internal
    id, parcel internal id. Input in neither format is never looked up.
    """
    code = normalize_short_code(value)
    if code:
        parcel = await order_repository.get_parcel_by_short_code(db, code)
        if parcel:
            return ResolvedIdentifier("parcel", parcel.id, parcel.order_id)
        order = await order_repository.get_order_by_short_code(db, code)
        if order:
            return ResolvedIdentifier("order", order.id, order.id)
        return None

    internal_id = normalize_internal_id(value)
    if internal_id is None:
        return None

    order = await order_repository.get_order(db, internal_id)
    if order:
        return ResolvedIdentifier("order", order.id, order.id)
    parcel = await order_repository.get_parcel(db, internal_id)
    if parcel:
        return ResolvedIdentifier("parcel", parcel.id, parcel.order_id)
    return None


async def resolve_order(db: AsyncSession, value: str) -> Optional[str]:
    """Internal order id for an order or parcel identifier."""
    resolved = await resolve(db, value)
    return resolved.order_id if resolved else None


async def resolve_parcel(db: AsyncSession, value: str) -> Optional[str]:
    """
    Internal parcel id. An order identifier resolves to the order's first
    parcel.
    """
    resolved = await resolve(db, value)
    if resolved is None:
        return None
    if resolved.kind == "parcel":
        return resolved.internal_id
    parcels = await order_repository.list_parcels(db, resolved.order_id)
    return parcels[0].id if parcels else None


def _draw_short_code() -> str:
    digits = "".join(str(secrets.randbelow(10)) for _ in range(SHORT_CODE_DIGITS))
    return f"{SHORT_CODE_PREFIX}{digits}"


async def new_short_code(db: AsyncSession, reserved: Iterable[str] = ()) -> str:
    """
    Draw a short code not used by any order or parcel.

    `reserved` holds codes already handed out but not yet flushed, such as
    the other codes of an order being built.
    """
    reserved = set(reserved)
    for _ in range(MAX_SHORT_CODE_ATTEMPTS):
        code = _draw_short_code()
        if code in reserved:
            continue
        if not await order_repository.short_code_exists(db, code):
            return code
        logger.info("Short code collision on %s, redrawing", code)
    raise ShortCodeExhaustedError(MAX_SHORT_CODE_ATTEMPTS)
