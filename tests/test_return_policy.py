# tests/test_return_policy.py
"""Tests for the eligibility window, money arithmetic and status transitions."""

import re
from datetime import timedelta
from decimal import Decimal

import pytest

from app.domain.models.returns import (
    ExchangeStatus,
    LineItem,
    PaymentStatus,
    RequestType,
    ReturnStatus,
)
from app.domain.services import return_policy as policy
from app.domain.services.return_policy import EligibilityFailure, TransitionCheck
from app.infrastructure.db.repositories.memory_store import InMemoryRecordStore
from tests.conftest import NOW, TOMORROW, make_order


def _item(price, qty=1, sku="SKU"):
    return LineItem(sku=sku, name=sku, price=Decimal(price), quantity=qty)


# ── Eligibility ──────────────────────────────────────────


@pytest.mark.parametrize(
    "days_ago, eligible, remaining",
    [(0, True, 7), (2, True, 5), (7, True, 0), (8, False, None), (30, False, None)],
)
def test_window_boundary(days_ago, eligible, remaining):
    result = policy.evaluate_order(make_order("ORD-1", days_ago), NOW)
    assert result.eligible is eligible
    assert result.days_remaining == remaining
    if not eligible:
        assert result.failure == EligibilityFailure.WINDOW_EXPIRED


def test_seven_days_and_a_few_hours_is_still_day_seven():
    order = make_order("ORD-1", 7)
    later = NOW + timedelta(hours=23)
    assert policy.evaluate_order(order, later).eligible is True
    assert policy.evaluate_order(order, later + timedelta(hours=1)).eligible is False


@pytest.mark.parametrize("status", ["shipped", "in_transit", "cancelled", "pending"])
def test_undelivered_orders_are_never_eligible(status):
    result = policy.evaluate_order(make_order("ORD-1", 1, status=status), NOW)
    assert result.eligible is False
    assert result.failure == EligibilityFailure.NOT_DELIVERED


def test_not_delivered_and_window_expired_reasons_differ():
    undelivered = policy.evaluate_order(make_order("ORD-1", None, status="shipped"), NOW)
    expired = policy.evaluate_order(make_order("ORD-2", 9), NOW)
    assert undelivered.reason != expired.reason
    assert "delivered" in undelivered.reason
    assert "expired" in expired.reason


def test_delivered_status_is_case_insensitive():
    assert policy.evaluate_order(make_order("ORD-1", 1, status="DELIVERED"), NOW).eligible is True


def test_check_eligibility_loads_the_order(event_loop):
    store = InMemoryRecordStore([make_order("ORD-1001", 2)])
    result = event_loop.run_until_complete(policy.check_eligibility(store, "ORD-1001", NOW))
    assert result.eligible is True
    assert result.order.order_id == "ORD-1001"
    assert result.days_remaining == 5


def test_check_eligibility_unknown_order(event_loop):
    result = event_loop.run_until_complete(
        policy.check_eligibility(InMemoryRecordStore(), "ORD-404", NOW)
    )
    assert result.eligible is False
    assert result.failure == EligibilityFailure.NOT_FOUND
    assert result.reason == "Order not found"


# ── Money ────────────────────────────────────────────────


def test_compute_refund_sums_price_times_quantity():
    assert policy.compute_refund([_item("599", 2), _item("250.50")]) == Decimal("1448.50")
    assert policy.compute_refund([]) == Decimal("0")


def test_price_difference_sign_convention():
    assert policy.compute_price_difference([_item("1000")], [_item("1200")]) == Decimal("200")
    assert policy.compute_price_difference([_item("1000")], [_item("800")]) == Decimal("-200")
    assert policy.compute_price_difference([_item("1000")], [_item("1000")]) == Decimal("0")


@pytest.mark.parametrize(
    "a, b",
    [
        ([_item("1000")], [_item("1200")]),
        ([_item("599", 2)], [_item("450", 3), _item("12.25")]),
        ([], [_item("10")]),
    ],
)
def test_price_difference_is_antisymmetric(a, b):
    assert policy.compute_price_difference(a, b) == -policy.compute_price_difference(b, a)


@pytest.mark.parametrize(
    "difference, expected",
    [
        (Decimal("200"), PaymentStatus.PENDING),
        (Decimal("0.01"), PaymentStatus.PENDING),
        (Decimal("0"), PaymentStatus.NOT_REQUIRED),
        (Decimal("-150"), PaymentStatus.NOT_REQUIRED),
    ],
)
def test_initial_payment_status(difference, expected):
    assert policy.initial_payment_status(difference) == expected


def test_fallback_items_uses_real_lines():
    order = make_order("ORD-1", 1, items=[_item("599", 2, sku="TSH-BLK-M")])
    items = policy.fallback_items(order)
    assert [(i.sku, i.quantity) for i in items] == [("TSH-BLK-M", 2)]


def test_fallback_items_without_lines_uses_order_total():
    order = make_order("ORD-9", 1, items=[], total="1500")
    (item,) = policy.fallback_items(order)
    assert item.price == Decimal("1500")
    assert item.quantity == 1


# ── Dates & ids ──────────────────────────────────────────


def test_next_pickup_date_is_tomorrow_in_ist():
    assert policy.next_pickup_date(NOW) == TOMORROW
    # 20:00 UTC is already the next day in IST
    late = NOW.replace(hour=20)
    assert policy.next_pickup_date(late) == TOMORROW + timedelta(days=1)


def test_request_ids_are_unique_and_prefixed():
    ids = {policy.generate_request_id("RET") for _ in range(200)}
    assert len(ids) == 200
    assert all(re.fullmatch(r"RET-\d{13}-[0-9A-F]{9}", i) for i in ids)


# ── Transitions ──────────────────────────────────────────


@pytest.mark.parametrize(
    "current, new, verdict",
    [
        ("initiated", "pickup_scheduled", TransitionCheck.ACCEPTED),
        ("pickup_scheduled", "Picked Up", TransitionCheck.ACCEPTED),
        ("picked_up", "delivered-to-warehouse", TransitionCheck.ACCEPTED),
        ("delivered_to_warehouse", "qc_passed", TransitionCheck.ACCEPTED),
        ("qc_passed", "refund_processed", TransitionCheck.ACCEPTED),
        ("refund_processed", "completed", TransitionCheck.ACCEPTED),
        ("picked_up", "picked_up", TransitionCheck.DUPLICATE),
        ("completed", "qc_passed", TransitionCheck.ILLEGAL),
        ("qc_failed", "refund_processed", TransitionCheck.ILLEGAL),
        ("initiated", "lost_in_space", TransitionCheck.UNKNOWN_STATUS),
    ],
)
def test_return_transitions(current, new, verdict):
    assert policy.check_transition(RequestType.RETURN, current, new) == verdict


@pytest.mark.parametrize(
    "current, new, verdict",
    [
        ("initiated", "payment_pending", TransitionCheck.ACCEPTED),
        ("initiated", "pickup_scheduled", TransitionCheck.ACCEPTED),
        ("payment_pending", "payment_completed", TransitionCheck.ACCEPTED),
        ("payment_completed", "pickup_scheduled", TransitionCheck.ACCEPTED),
        ("qc_passed", "new_order_created", TransitionCheck.ACCEPTED),
        ("payment_pending", "pickup_scheduled", TransitionCheck.ILLEGAL),
        ("completed", "picked_up", TransitionCheck.ILLEGAL),
        ("picked_up", "refund_processed", TransitionCheck.UNKNOWN_STATUS),
    ],
)
def test_exchange_transitions(current, new, verdict):
    assert policy.check_transition(RequestType.EXCHANGE, current, new) == verdict


def test_every_status_has_a_transition_row():
    assert set(policy.RETURN_TRANSITIONS) == set(ReturnStatus)
    assert set(policy.EXCHANGE_TRANSITIONS) == set(ExchangeStatus)


def test_terminal_statuses_are_not_open():
    assert policy.is_open(RequestType.RETURN, "initiated") is True
    assert policy.is_open(RequestType.RETURN, "qc_failed") is False
    assert policy.is_open(RequestType.RETURN, "completed") is False
    assert policy.is_open(RequestType.EXCHANGE, "payment_pending") is True
    assert policy.is_open(RequestType.EXCHANGE, "completed") is False
