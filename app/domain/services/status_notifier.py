# app/domain/services/status_notifier.py
"""
Applies asynchronous shipping / payment callbacks to returns and exchanges
and tells the customer what changed.

Shipping callbacks are matched on the provider's own return reference,
payment callbacks on the order id of a pending exchange.  A status change
must pass the transition table in ``return_policy``; refused changes are
audit-logged and dropped without a customer message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional

from app.core.locks import KeyedLock
from app.domain.models.returns import ExchangeStatus, PaymentStatus, RequestType
from app.domain.ports import Messenger, RecordStore, RecordStoreError, ShippingProvider
from app.domain.services import return_messages as msg
from app.domain.services.pickup_service import schedule_exchange_pickup
from app.domain.services.return_policy import (
    RETURN_REFUND_STATUS,
    TransitionCheck,
    check_transition,
    parse_status,
)
from app.infrastructure import audit

logger = logging.getLogger("status_notifier")

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"

# Exchange statuses only the payment webhook may set
_PAYMENT_DRIVEN = {ExchangeStatus.PAYMENT_PENDING, ExchangeStatus.PAYMENT_COMPLETED}


@dataclass(frozen=True)
class ShippingStatusUpdate:
    reference: str
    status: str
    awb: Optional[str] = None


@dataclass(frozen=True)
class PaymentEvent:
    event: str
    order_id: Optional[str]
    payment_ref: Optional[str] = None
    amount: Optional[Decimal] = None
    error_text: Optional[str] = None


class NotifyResult(str, Enum):
    APPLIED = "applied"
    NOTIFIED = "notified"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


class StatusNotifier:
    def __init__(
        self,
        *,
        records: RecordStore,
        shipping: ShippingProvider,
        messenger: Messenger,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.records = records
        self.shipping = shipping
        self.messenger = messenger
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = KeyedLock()

    async def _send(self, phone: str, text: str) -> None:
        result = await self.messenger.send_text(phone, text)
        if not result.ok:
            logger.warning("Status message to %s not delivered: %s", phone, result.error)

    # ------------------------------------------------------------------
    # Shipping provider
    # ------------------------------------------------------------------
    async def handle_shipping_update(self, update: ShippingStatusUpdate) -> List[NotifyResult]:
        results: List[NotifyResult] = []

        return_record = await self.records.find_return_by_shipping_ref(update.reference)
        if return_record is not None:
            results.append(await self._apply_return_status(return_record.return_id, update))

        exchange_record = await self.records.find_exchange_by_shipping_ref(update.reference)
        if exchange_record is not None:
            results.append(await self._apply_exchange_status(exchange_record.exchange_id, update))

        if not results:
            logger.warning("Shipping update for unknown reference %s (status=%s)", update.reference, update.status)
            return [NotifyResult.NOT_FOUND]
        return results

    async def _apply_return_status(self, return_id: str, update: ShippingStatusUpdate) -> NotifyResult:
        async with self._locks.hold(f"return:{return_id}"):
            record = await self.records.find_return_by_id(return_id)
            if record is None:
                return NotifyResult.NOT_FOUND

            current = record.status.value
            verdict = check_transition(RequestType.RETURN, current, update.status)
            if verdict == TransitionCheck.DUPLICATE:
                logger.info("Return %s already %s; ignoring repeat", return_id, current)
                return NotifyResult.DUPLICATE
            if verdict != TransitionCheck.ACCEPTED:
                audit.log_unhandled_transition(
                    "return", return_id,
                    from_status=current, to_status=update.status,
                    source="shipping_webhook", verdict=verdict.value,
                )
                return NotifyResult.REJECTED

            new_status = parse_status(RequestType.RETURN, update.status)
            fields = {}
            refund_status = RETURN_REFUND_STATUS.get(new_status)
            if refund_status is not None:
                fields["refund_status"] = refund_status.value
            if update.awb:
                fields["awb"] = update.awb

            updated = await self.records.update_return_status(return_id, new_status.value, **fields)
            audit.log_status_transition(
                "return", return_id,
                from_status=current, to_status=new_status.value,
                source="shipping_webhook", details=fields,
            )

            text = msg.return_status_update(updated or record, new_status)
            if text:
                await self._send(record.customer_phone, text)
            return NotifyResult.APPLIED

    async def _apply_exchange_status(self, exchange_id: str, update: ShippingStatusUpdate) -> NotifyResult:
        async with self._locks.hold(f"exchange:{exchange_id}"):
            record = await self.records.find_exchange_by_id(exchange_id)
            if record is None:
                return NotifyResult.NOT_FOUND

            current = record.status.value
            new_status = parse_status(RequestType.EXCHANGE, update.status)
            verdict = check_transition(RequestType.EXCHANGE, current, update.status)
            if new_status in _PAYMENT_DRIVEN:
                verdict = TransitionCheck.ILLEGAL
            if verdict == TransitionCheck.DUPLICATE:
                logger.info("Exchange %s already %s; ignoring repeat", exchange_id, current)
                return NotifyResult.DUPLICATE
            if verdict != TransitionCheck.ACCEPTED:
                audit.log_unhandled_transition(
                    "exchange", exchange_id,
                    from_status=current, to_status=update.status,
                    source="shipping_webhook", verdict=verdict.value,
                )
                return NotifyResult.REJECTED

            fields = {"awb": update.awb} if update.awb else {}
            updated = await self.records.update_exchange_status(exchange_id, new_status.value, **fields)
            audit.log_status_transition(
                "exchange", exchange_id,
                from_status=current, to_status=new_status.value,
                source="shipping_webhook", details=fields,
            )

            text = msg.exchange_status_update(updated or record, new_status)
            if text:
                await self._send(record.customer_phone, text)
            return NotifyResult.APPLIED

    # ------------------------------------------------------------------
    # Payment provider
    # ------------------------------------------------------------------
    async def handle_payment_event(self, event: PaymentEvent) -> NotifyResult:
        if event.event not in (PAYMENT_CAPTURED, PAYMENT_FAILED):
            logger.info("Ignoring payment event %s", event.event)
            return NotifyResult.IGNORED
        if not event.order_id:
            logger.warning("Payment event %s without order id (payment=%s)", event.event, event.payment_ref)
            return NotifyResult.NOT_FOUND

        exchange = await self.records.find_pending_exchange_for_order(event.order_id)
        if exchange is None:
            logger.warning("No exchange awaiting payment for order %s (%s)", event.order_id, event.event)
            return NotifyResult.NOT_FOUND

        if event.event == PAYMENT_FAILED:
            logger.info("Payment failed for exchange %s: %s", exchange.exchange_id, event.error_text)
            await self._send(exchange.customer_phone, msg.payment_failed(exchange, event.error_text))
            return NotifyResult.NOTIFIED

        return await self._payment_captured(exchange.exchange_id, event)

    async def _payment_captured(self, exchange_id: str, event: PaymentEvent) -> NotifyResult:
        async with self._locks.hold(f"exchange:{exchange_id}"):
            exchange = await self.records.find_exchange_by_id(exchange_id)
            if exchange is None:
                return NotifyResult.NOT_FOUND
            if exchange.payment_status != PaymentStatus.PENDING:
                logger.info("Exchange %s payment already %s", exchange_id, exchange.payment_status.value)
                return NotifyResult.DUPLICATE

            current = exchange.status.value
            verdict = check_transition(RequestType.EXCHANGE, current, ExchangeStatus.PAYMENT_COMPLETED.value)
            if verdict != TransitionCheck.ACCEPTED:
                audit.log_unhandled_transition(
                    "exchange", exchange_id,
                    from_status=current, to_status=ExchangeStatus.PAYMENT_COMPLETED.value,
                    source="payment_webhook", verdict=verdict.value,
                )
                return NotifyResult.REJECTED

            paid = await self.records.update_exchange_status(
                exchange_id,
                ExchangeStatus.PAYMENT_COMPLETED.value,
                payment_status=PaymentStatus.COMPLETED.value,
                payment_ref=event.payment_ref,
            )
            audit.log_status_transition(
                "exchange", exchange_id,
                from_status=current, to_status=ExchangeStatus.PAYMENT_COMPLETED.value,
                source="payment_webhook", details={"payment_ref": event.payment_ref, "amount": str(event.amount)},
            )
            paid = paid or exchange
            payment_ref = event.payment_ref or "-"

            # Payment is already recorded; storage failures past this point
            # end in the pickup-pending message.
            try:
                order = await self.records.find_order_by_id(paid.order_id)
            except RecordStoreError as exc:
                logger.error("Order lookup for paid exchange %s failed: %s", exchange_id, exc)
                await self._send(paid.customer_phone, msg.payment_received_pickup_pending(paid, payment_ref))
                return NotifyResult.APPLIED
            if order is None:
                logger.error("Order %s for exchange %s is gone; pickup not scheduled", paid.order_id, exchange_id)
                await self._send(paid.customer_phone, msg.payment_received_pickup_pending(paid, payment_ref))
                return NotifyResult.APPLIED

            scheduled = await schedule_exchange_pickup(self.shipping, self.records, order, paid, self._clock())
            if not scheduled.ok:
                await self._send(paid.customer_phone, msg.payment_received_pickup_pending(paid, payment_ref))
                return NotifyResult.APPLIED

            audit.log_status_transition(
                "exchange", exchange_id,
                from_status=ExchangeStatus.PAYMENT_COMPLETED.value,
                to_status=ExchangeStatus.PICKUP_SCHEDULED.value,
                source="payment_webhook",
                details={"shipping_ref": scheduled.value.shipping_exchange_ref},
            )
            await self._send(paid.customer_phone, msg.payment_received(scheduled.value, payment_ref))
            return NotifyResult.APPLIED
