# tests/test_status_notifier.py
"""Shipping and payment callbacks applied to stored returns / exchanges."""

import logging
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.domain.models.returns import (
    ExchangeRecord,
    ExchangeStatus,
    LineItem,
    PaymentStatus,
    RefundStatus,
    ReturnRecord,
    ReturnStatus,
)
from app.domain.ports import RecordStoreError
from app.domain.services.status_notifier import NotifyResult, PaymentEvent, ShippingStatusUpdate
from tests.conftest import NOW, TOMORROW, WA_ID

TEE = LineItem(sku="TSH-RED-M", name="Classic Tee - Red", price=Decimal("1000"))


def _return(status=ReturnStatus.INITIATED, ref="SR-9"):
    return ReturnRecord(
        return_id="RET-1700000000000-ABCDEF123",
        order_id="ORD-1001",
        customer_phone=WA_ID,
        items=[TEE],
        reason="Wrong size",
        status=status,
        refund_amount=Decimal("1000"),
        shipping_return_ref=ref,
        created_at=NOW,
    )


def _exchange(status=ExchangeStatus.PAYMENT_PENDING, payment=PaymentStatus.PENDING, ref=None):
    return ExchangeRecord(
        exchange_id="EXC-1700000000000-ABCDEF123",
        order_id="ORD-1001",
        customer_phone=WA_ID,
        old_items=[TEE],
        new_items=[TEE.model_copy(update={"sku": "TSH-BLU-L", "price": Decimal("1200")})],
        reason="Wrong size",
        price_difference=Decimal("200"),
        payment_status=payment,
        status=status,
        shipping_exchange_ref=ref,
        created_at=NOW,
    )


def _seed(event_loop, records, record):
    if isinstance(record, ReturnRecord):
        return event_loop.run_until_complete(records.create_return(record))
    return event_loop.run_until_complete(records.create_exchange(record))


def _ship(event_loop, notifier, ref, status, awb=None):
    return event_loop.run_until_complete(
        notifier.handle_shipping_update(ShippingStatusUpdate(reference=ref, status=status, awb=awb))
    )


def _pay(event_loop, notifier, event, order_id="ORD-1001", **kw):
    return event_loop.run_until_complete(
        notifier.handle_payment_event(PaymentEvent(event=event, order_id=order_id, **kw))
    )


# ── Shipping updates ─────────────────────────────────────


def test_return_status_change_is_applied_and_announced(event_loop, notifier, records, messenger):
    record = _seed(event_loop, records, _return())
    assert _ship(event_loop, notifier, "SR-9", "Pickup Scheduled", awb="AWB77") == [NotifyResult.APPLIED]

    stored = records.returns[record.return_id]
    assert stored.status == ReturnStatus.PICKUP_SCHEDULED
    assert stored.awb == "AWB77"
    assert stored.refund_status == RefundStatus.PENDING
    assert "Pickup Scheduled" in messenger.last
    assert record.return_id in messenger.last


@pytest.mark.parametrize(
    "start, status, refund",
    [
        (ReturnStatus.PICKED_UP, "qc_passed", RefundStatus.PROCESSING),
        (ReturnStatus.DELIVERED_TO_WAREHOUSE, "qc_failed", RefundStatus.FAILED),
        (ReturnStatus.QC_PASSED, "refund_processed", RefundStatus.COMPLETED),
    ],
)
def test_return_refund_status_follows(event_loop, notifier, records, start, status, refund):
    record = _seed(event_loop, records, _return(status=start))
    _ship(event_loop, notifier, "SR-9", status)
    assert records.returns[record.return_id].refund_status == refund


def test_refund_processed_message_names_amount(event_loop, notifier, records, messenger):
    _seed(event_loop, records, _return(status=ReturnStatus.QC_PASSED))
    _ship(event_loop, notifier, "SR-9", "refund_processed")
    assert "₹1,000" in messenger.last


def test_repeated_status_is_a_no_op(event_loop, notifier, records, messenger):
    record = _seed(event_loop, records, _return(status=ReturnStatus.PICKED_UP))
    before = records.returns[record.return_id].updated_at
    assert _ship(event_loop, notifier, "SR-9", "picked_up") == [NotifyResult.DUPLICATE]
    assert records.returns[record.return_id].updated_at == before
    assert messenger.sent == []


def test_illegal_move_is_refused_and_audited(event_loop, notifier, records, messenger, caplog):
    record = _seed(event_loop, records, _return(status=ReturnStatus.COMPLETED))
    with caplog.at_level(logging.WARNING, logger="audit"):
        assert _ship(event_loop, notifier, "SR-9", "qc_passed") == [NotifyResult.REJECTED]
    assert records.returns[record.return_id].status == ReturnStatus.COMPLETED
    assert messenger.sent == []
    assert "UNHANDLED_TRANSITION" in caplog.text
    assert "verdict=illegal" in caplog.text


def test_unknown_status_is_refused(event_loop, notifier, records, caplog):
    record = _seed(event_loop, records, _return())
    with caplog.at_level(logging.WARNING, logger="audit"):
        assert _ship(event_loop, notifier, "SR-9", "teleported") == [NotifyResult.REJECTED]
    assert records.returns[record.return_id].status == ReturnStatus.INITIATED
    assert "verdict=unknown_status" in caplog.text


def test_unknown_reference(event_loop, notifier):
    assert _ship(event_loop, notifier, "SR-404", "picked_up") == [NotifyResult.NOT_FOUND]


def test_exchange_shipping_update(event_loop, notifier, records, messenger):
    record = _seed(
        event_loop, records, _exchange(status=ExchangeStatus.PICKUP_SCHEDULED, payment=PaymentStatus.COMPLETED, ref="SR-5")
    )
    assert _ship(event_loop, notifier, "SR-5", "picked_up") == [NotifyResult.APPLIED]
    assert records.exchanges[record.exchange_id].status == ExchangeStatus.PICKED_UP
    assert "old items have been picked up" in messenger.last


def test_payment_statuses_cannot_come_from_shipping(event_loop, notifier, records, messenger):
    record = _seed(event_loop, records, _exchange(status=ExchangeStatus.INITIATED, ref="SR-5"))
    assert _ship(event_loop, notifier, "SR-5", "payment_completed") == [NotifyResult.REJECTED]
    assert records.exchanges[record.exchange_id].status == ExchangeStatus.INITIATED
    assert messenger.sent == []


# ── Payment events ───────────────────────────────────────


def test_failed_payment_is_reported_without_state_change(event_loop, notifier, records, messenger):
    record = _seed(event_loop, records, _exchange())
    result = _pay(event_loop, notifier, "payment.failed", payment_ref="pay_9", error_text="Card declined")
    assert result == NotifyResult.NOTIFIED
    stored = records.exchanges[record.exchange_id]
    assert stored.status == ExchangeStatus.PAYMENT_PENDING
    assert stored.payment_status == PaymentStatus.PENDING
    assert "Payment Failed" in messenger.last
    assert "Card declined" in messenger.last


def test_captured_payment_schedules_pickup(event_loop, notifier, records, shipping, messenger):
    record = _seed(event_loop, records, _exchange())
    result = _pay(event_loop, notifier, "payment.captured", payment_ref="pay_1", amount=Decimal("200"))
    assert result == NotifyResult.APPLIED

    stored = records.exchanges[record.exchange_id]
    assert stored.status == ExchangeStatus.PICKUP_SCHEDULED
    assert stored.payment_status == PaymentStatus.COMPLETED
    assert stored.payment_ref == "pay_1"
    assert stored.pickup_date == TOMORROW
    assert [p[0] for p in shipping.pickups] == ["SR-1"]
    assert "pay_1" in messenger.last


def test_second_capture_is_duplicate(event_loop, notifier, records, shipping):
    _seed(event_loop, records, _exchange())
    _pay(event_loop, notifier, "payment.captured", payment_ref="pay_1")
    # no exchange is pending any more, so the repeat finds nothing to pay
    assert _pay(event_loop, notifier, "payment.captured", payment_ref="pay_1") == NotifyResult.NOT_FOUND
    assert len(shipping.created) == 1


def test_capture_with_pickup_failure_keeps_payment(event_loop, notifier, records, shipping, messenger):
    record = _seed(event_loop, records, _exchange())
    shipping.fail_pickup = "No courier"
    assert _pay(event_loop, notifier, "payment.captured", payment_ref="pay_2") == NotifyResult.APPLIED

    stored = records.exchanges[record.exchange_id]
    assert stored.status == ExchangeStatus.PAYMENT_COMPLETED
    assert stored.payment_status == PaymentStatus.COMPLETED
    assert "couldn't schedule your pickup" in messenger.last


def test_capture_with_order_lookup_failure_still_tells_customer(event_loop, notifier, records, shipping, messenger):
    record = _seed(event_loop, records, _exchange())
    records.find_order_by_id = AsyncMock(side_effect=RecordStoreError("db down"))
    assert _pay(event_loop, notifier, "payment.captured", payment_ref="pay_4") == NotifyResult.APPLIED

    stored = records.exchanges[record.exchange_id]
    assert stored.status == ExchangeStatus.PAYMENT_COMPLETED
    assert stored.payment_status == PaymentStatus.COMPLETED
    assert shipping.created == []
    assert "couldn't schedule your pickup" in messenger.last
    assert "pay_4" in messenger.last


def test_capture_with_pickup_write_failure_still_announces_pickup(event_loop, notifier, records, shipping, messenger):
    record = _seed(event_loop, records, _exchange())
    real_update = records.update_exchange_status

    async def update_then_fail(exchange_id, status, **fields):
        if status == ExchangeStatus.PICKUP_SCHEDULED.value:
            raise RecordStoreError("db down")
        return await real_update(exchange_id, status, **fields)

    records.update_exchange_status = update_then_fail
    assert _pay(event_loop, notifier, "payment.captured", payment_ref="pay_5") == NotifyResult.APPLIED

    assert records.exchanges[record.exchange_id].payment_status == PaymentStatus.COMPLETED
    assert [p[0] for p in shipping.pickups] == ["SR-1"]
    assert "pay_5" in messenger.last
    assert "Pickup scheduled for" in messenger.last


def test_capture_after_lost_pending_write(event_loop, notifier, records):
    record = _seed(event_loop, records, _exchange(status=ExchangeStatus.INITIATED))
    assert _pay(event_loop, notifier, "payment.captured", payment_ref="pay_3") == NotifyResult.APPLIED
    assert records.exchanges[record.exchange_id].status == ExchangeStatus.PICKUP_SCHEDULED


def test_payment_for_unknown_order(event_loop, notifier):
    assert _pay(event_loop, notifier, "payment.captured", order_id="ORD-404") == NotifyResult.NOT_FOUND
    assert _pay(event_loop, notifier, "payment.captured", order_id=None) == NotifyResult.NOT_FOUND


def test_other_events_are_ignored(event_loop, notifier, records, messenger):
    _seed(event_loop, records, _exchange())
    assert _pay(event_loop, notifier, "payment.authorized") == NotifyResult.IGNORED
    assert messenger.sent == []
