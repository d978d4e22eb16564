# app/domain/services/return_policy.py
"""
Return / exchange business rules.

Eligibility window, refund and price-difference arithmetic, pickup date
policy and the allowed status transitions for returns and exchanges.
Nothing in here talks to WhatsApp; the record store is only used to load
the order for an eligibility check.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union

from app.core.config import settings
from app.domain.models.returns import (
    ExchangeStatus,
    LineItem,
    Order,
    PaymentStatus,
    RefundStatus,
    RequestType,
    ReturnStatus,
)
from app.domain.ports import RecordStore

logger = logging.getLogger("return_policy")

# IST offset
IST = timezone(timedelta(hours=5, minutes=30))


class EligibilityFailure(str, Enum):
    NOT_FOUND = "not_found"
    NOT_DELIVERED = "not_delivered"
    WINDOW_EXPIRED = "window_expired"


FAILURE_TEXT = {
    EligibilityFailure.NOT_FOUND: "Order not found",
    EligibilityFailure.NOT_DELIVERED: "Order must be delivered to initiate return/exchange",
    EligibilityFailure.WINDOW_EXPIRED: "Return/exchange window has expired ({days} days from delivery)",
}


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    failure: Optional[EligibilityFailure] = None
    days_remaining: Optional[int] = None
    order: Optional[Order] = None

    @property
    def reason(self) -> Optional[str]:
        if self.failure is None:
            return None
        return FAILURE_TEXT[self.failure].format(days=settings.RETURN_WINDOW_DAYS)


def elapsed_days(delivered_at: datetime, now: datetime) -> int:
    """Whole days between delivery and ``now`` (naive timestamps are UTC)."""
    if delivered_at.tzinfo is None:
        delivered_at = delivered_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - delivered_at) // timedelta(days=1)


def evaluate_order(
    order: Optional[Order],
    now: datetime,
    window_days: Optional[int] = None,
) -> Eligibility:
    """Apply the eligibility rules to an already-loaded order."""
    window = settings.RETURN_WINDOW_DAYS if window_days is None else window_days

    if order is None:
        return Eligibility(eligible=False, failure=EligibilityFailure.NOT_FOUND)

    if order.status.lower() != "delivered" or order.delivered_at is None:
        return Eligibility(eligible=False, failure=EligibilityFailure.NOT_DELIVERED)

    days = elapsed_days(order.delivered_at, now)
    if days > window:
        return Eligibility(eligible=False, failure=EligibilityFailure.WINDOW_EXPIRED)

    return Eligibility(eligible=True, days_remaining=window - max(days, 0), order=order)


async def check_eligibility(
    records: RecordStore,
    order_id: str,
    now: Optional[datetime] = None,
) -> Eligibility:
    """Load ``order_id`` and decide whether a return/exchange may start.

    Storage failures propagate as ``RecordStoreError``.
    """
    order = await records.find_order_by_id(order_id)
    result = evaluate_order(order, now or datetime.now(timezone.utc))
    if not result.eligible:
        logger.info("Order %s not eligible: %s", order_id, result.failure.value)
    return result


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

def items_total(items: Iterable[LineItem]) -> Decimal:
    return sum((Decimal(item.price) * item.quantity for item in items), Decimal("0"))


def compute_refund(items: Iterable[LineItem]) -> Decimal:
    """Refund = Σ price × quantity. No tax or shipping adjustment."""
    return items_total(items)


def compute_price_difference(
    old_items: Iterable[LineItem],
    new_items: Iterable[LineItem],
) -> Decimal:
    """Σnew − Σold. Positive: customer pays; negative: refund due."""
    return items_total(new_items) - items_total(old_items)


def initial_payment_status(price_difference: Decimal) -> PaymentStatus:
    if price_difference > 0:
        return PaymentStatus.PENDING
    return PaymentStatus.NOT_REQUIRED


def fallback_items(order: Order) -> list[LineItem]:
    """Order lines for the request; one line at the order total if none were synced."""
    if order.items:
        return [item.model_copy() for item in order.items]
    return [
        LineItem(
            sku=f"ORDER-{order.order_id}",
            name=f"Order {order.order_id}",
            price=order.total_amount,
            quantity=1,
        )
    ]


# ---------------------------------------------------------------------------
# Dates & identifiers
# ---------------------------------------------------------------------------

def next_pickup_date(now: Optional[datetime] = None) -> date:
    now = now or datetime.now(IST)
    return (now.astimezone(IST) + timedelta(days=settings.PICKUP_LEAD_DAYS)).date()


def generate_request_id(prefix: str) -> str:
    """e.g. ``RET-1718000000000-3F9A1C0B2``."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

RETURN_TRANSITIONS: Dict[ReturnStatus, FrozenSet[ReturnStatus]] = {
    ReturnStatus.INITIATED: frozenset({ReturnStatus.PICKUP_SCHEDULED, ReturnStatus.PICKED_UP}),
    ReturnStatus.PICKUP_SCHEDULED: frozenset({ReturnStatus.PICKED_UP}),
    ReturnStatus.PICKED_UP: frozenset({
        ReturnStatus.DELIVERED_TO_WAREHOUSE,
        ReturnStatus.QC_PASSED,
        ReturnStatus.QC_FAILED,
    }),
    ReturnStatus.DELIVERED_TO_WAREHOUSE: frozenset({ReturnStatus.QC_PASSED, ReturnStatus.QC_FAILED}),
    ReturnStatus.QC_PASSED: frozenset({ReturnStatus.REFUND_PROCESSED, ReturnStatus.COMPLETED}),
    ReturnStatus.REFUND_PROCESSED: frozenset({ReturnStatus.COMPLETED}),
    ReturnStatus.QC_FAILED: frozenset(),
    ReturnStatus.COMPLETED: frozenset(),
}

EXCHANGE_TRANSITIONS: Dict[ExchangeStatus, FrozenSet[ExchangeStatus]] = {
    ExchangeStatus.INITIATED: frozenset({
        ExchangeStatus.PAYMENT_PENDING,
        ExchangeStatus.PAYMENT_COMPLETED,
        ExchangeStatus.PICKUP_SCHEDULED,
    }),
    ExchangeStatus.PAYMENT_PENDING: frozenset({ExchangeStatus.PAYMENT_COMPLETED}),
    ExchangeStatus.PAYMENT_COMPLETED: frozenset({ExchangeStatus.PICKUP_SCHEDULED}),
    ExchangeStatus.PICKUP_SCHEDULED: frozenset({ExchangeStatus.PICKED_UP}),
    ExchangeStatus.PICKED_UP: frozenset({ExchangeStatus.QC_PASSED, ExchangeStatus.QC_FAILED}),
    ExchangeStatus.QC_PASSED: frozenset({ExchangeStatus.NEW_ORDER_CREATED}),
    ExchangeStatus.NEW_ORDER_CREATED: frozenset({ExchangeStatus.COMPLETED}),
    ExchangeStatus.QC_FAILED: frozenset(),
    ExchangeStatus.COMPLETED: frozenset(),
}

# Refund bookkeeping that follows a return status change
RETURN_REFUND_STATUS = {
    ReturnStatus.QC_PASSED: RefundStatus.PROCESSING,
    ReturnStatus.QC_FAILED: RefundStatus.FAILED,
    ReturnStatus.REFUND_PROCESSED: RefundStatus.COMPLETED,
    ReturnStatus.COMPLETED: RefundStatus.COMPLETED,
}


class TransitionCheck(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    UNKNOWN_STATUS = "unknown_status"
    ILLEGAL = "illegal"


def normalize_status(raw: str) -> str:
    """``"Picked Up"`` / ``"picked-up"`` → ``"picked_up"``."""
    return "_".join(raw.strip().lower().replace("-", " ").split())


def parse_status(kind: RequestType, raw: str) -> Optional[Union[ReturnStatus, ExchangeStatus]]:
    enum = ReturnStatus if kind == RequestType.RETURN else ExchangeStatus
    try:
        return enum(normalize_status(raw))
    except ValueError:
        return None


def check_transition(kind: RequestType, current: str, new: str) -> TransitionCheck:
    table = RETURN_TRANSITIONS if kind == RequestType.RETURN else EXCHANGE_TRANSITIONS
    target = parse_status(kind, new)
    if target is None:
        return TransitionCheck.UNKNOWN_STATUS

    source = parse_status(kind, current)
    if source is None:
        return TransitionCheck.ILLEGAL
    if source == target:
        return TransitionCheck.DUPLICATE
    if target in table[source]:
        return TransitionCheck.ACCEPTED
    return TransitionCheck.ILLEGAL


def is_open(kind: RequestType, status: str) -> bool:
    """True while the request can still move (not qc_failed / completed)."""
    table = RETURN_TRANSITIONS if kind == RequestType.RETURN else EXCHANGE_TRANSITIONS
    parsed = parse_status(kind, status)
    return parsed is not None and bool(table[parsed])
