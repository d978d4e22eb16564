# app/domain/services/return_exchange_flow.py
"""
WhatsApp return / exchange dialogue.

Steps:
    (no session)                 – "return" / "exchange" starts a dialogue,
                                   "return status <id>" answers a lookup
    awaiting_order_id            – eligibility check, exclusivity guard
    awaiting_reason              – reason menu 1-6
    awaiting_item_selection      – return: 1 confirms, anything else cancels
                                   exchange: free-text description of new item
    awaiting_new_item_selection  – exchange: 1 confirms, anything else cancels

Each step handler receives a private copy of the session and returns a
``StepOutcome``.  The copy is written back (or the session cleared) only
once every external call of that step has resolved, and all of it happens
under the store's per-phone lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from app.core.config import settings
from app.domain.models.conversation import FlowSession, FlowStep
from app.domain.models.returns import (
    ExchangeRecord,
    ExchangeStatus,
    Order,
    RefundStatus,
    RequestType,
    ReturnRecord,
    ReturnStatus,
)
from app.domain.ports import (
    Catalog,
    CustomerContact,
    Messenger,
    PaymentProvider,
    RecordStore,
    RecordStoreError,
    SessionCorrupted,
    SessionStore,
    ShippingProvider,
)
from app.domain.services import return_messages as msg
from app.domain.services.pickup_service import arrange_pickup
from app.domain.services.return_policy import (
    check_eligibility,
    compute_price_difference,
    compute_refund,
    fallback_items,
    generate_request_id,
    initial_payment_status,
)

logger = logging.getLogger("return_exchange_flow")


@dataclass
class StepOutcome:
    """Result of one step: the session to keep (``None`` ends it) and replies."""

    session: Optional[FlowSession]
    replies: List[str] = field(default_factory=list)


def _is_start_keyword(lowered: str) -> bool:
    return (
        lowered in ("return", "exchange")
        or "return order" in lowered
        or "exchange order" in lowered
    )


def _is_status_query(lowered: str) -> bool:
    return lowered.startswith("return status") or lowered.startswith("exchange status")


class ReturnExchangeFlow:
    def __init__(
        self,
        *,
        sessions: SessionStore,
        records: RecordStore,
        shipping: ShippingProvider,
        payments: PaymentProvider,
        messenger: Messenger,
        catalog: Catalog,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.sessions = sessions
        self.records = records
        self.shipping = shipping
        self.payments = payments
        self.messenger = messenger
        self.catalog = catalog
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def handle(self, phone: str, text: str) -> bool:
        """Process one inbound message. Returns False if it isn't ours."""
        async with self.sessions.lock(phone):
            try:
                session = await self.sessions.get(phone)
            except SessionCorrupted:
                logger.warning("Unreadable session for %s; starting over", phone)
                await self._finish(phone, StepOutcome(None, [msg.session_expired()]))
                return True

            if session is None:
                outcome = await self._without_session(phone, text)
                if outcome is None:
                    return False
            else:
                outcome = await self._advance(session, text)

            await self._finish(phone, outcome)
            return True

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------
    async def _finish(self, phone: str, outcome: StepOutcome) -> None:
        if outcome.session is None:
            await self.sessions.clear(phone)
        else:
            outcome.session.touch()
            await self.sessions.save(outcome.session)

        for reply in outcome.replies:
            await self._send(phone, reply)

    async def _send(self, phone: str, text: str) -> None:
        result = await self.messenger.send_text(phone, text)
        if not result.ok:
            logger.warning("Message to %s not delivered: %s", phone, result.error)

    async def _advance(self, session: FlowSession, text: str) -> StepOutcome:
        handler = _STEP_HANDLERS.get(session.step)
        if handler is None:
            logger.warning("No handler for step %s (phone=%s)", session.step, session.phone)
            return StepOutcome(None, [msg.session_expired()])
        return await handler(self, session.model_copy(deep=True), text)

    # ------------------------------------------------------------------
    # No open dialogue
    # ------------------------------------------------------------------
    async def _without_session(self, phone: str, text: str) -> Optional[StepOutcome]:
        lowered = text.lower().strip()

        if _is_start_keyword(lowered):
            kind = RequestType.EXCHANGE if "exchange" in lowered else RequestType.RETURN
            session = FlowSession(phone=phone, type=kind, step=FlowStep.AWAITING_ORDER_ID)
            logger.info("Starting %s dialogue for %s", kind.value, phone)
            return StepOutcome(session, [msg.start_prompt(kind)])

        if _is_status_query(lowered):
            return StepOutcome(None, [await self._status_reply(text, lowered)])

        return None

    async def _status_reply(self, text: str, lowered: str) -> str:
        kind = RequestType.EXCHANGE if lowered.startswith("exchange") else RequestType.RETURN
        parts = text.split()
        if len(parts) < 3:
            return msg.status_usage()
        request_id = parts[-1].strip().upper()

        try:
            if kind == RequestType.RETURN:
                record = await self.records.find_return_by_id(request_id)
            else:
                record = await self.records.find_exchange_by_id(request_id)
        except RecordStoreError as exc:
            logger.error("Status lookup for %s failed: %s", request_id, exc)
            return msg.status_lookup_failed()

        if record is None:
            return msg.not_found(kind, request_id)
        return msg.status_summary(kind, record)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    async def _on_order_id(self, session: FlowSession, text: str) -> StepOutcome:
        order_id = text.strip().upper()
        if not order_id:
            return StepOutcome(session, [msg.empty_order_id()])

        try:
            eligibility = await check_eligibility(self.records, order_id, self._clock())
            already_open = eligibility.eligible and await self.records.has_open_request(order_id)
        except RecordStoreError as exc:
            logger.error("Eligibility check for %s failed: %s", order_id, exc)
            return StepOutcome(None, [msg.failed(session.type, str(exc))])

        if not eligibility.eligible:
            return StepOutcome(None, [msg.ineligible(eligibility.reason)])
        if already_open:
            logger.info("Order %s already has an open request; refusing new %s", order_id, session.type.value)
            return StepOutcome(None, [msg.already_open(order_id)])

        session.data.order_id = order_id
        session.data.order = eligibility.order
        session.data.days_remaining = eligibility.days_remaining
        session.step = FlowStep.AWAITING_REASON
        return StepOutcome(
            session,
            [msg.reason_menu(order_id, eligibility.days_remaining, session.type)],
        )

    async def _on_reason(self, session: FlowSession, text: str) -> StepOutcome:
        reason = msg.REASONS.get(text.strip())
        if reason is None:
            return StepOutcome(session, [msg.invalid_reason()])

        session.data.reason = reason
        session.step = FlowStep.AWAITING_ITEM_SELECTION
        if session.type == RequestType.RETURN:
            reply = msg.confirm_return(reason, fallback_items(session.data.order))
        else:
            reply = msg.ask_new_item(reason)
        return StepOutcome(session, [reply])

    async def _on_item_selection(self, session: FlowSession, text: str) -> StepOutcome:
        if session.type == RequestType.RETURN:
            if text.strip() == "1":
                return await self._process_return(session)
            return StepOutcome(None, [msg.cancelled(RequestType.RETURN)])

        description = text.strip()
        if not description:
            return StepOutcome(session, [msg.empty_new_item()])
        session.data.new_item_description = description
        session.step = FlowStep.AWAITING_NEW_ITEM_SELECTION
        return StepOutcome(session, [msg.confirm_exchange(description)])

    async def _on_new_item_selection(self, session: FlowSession, text: str) -> StepOutcome:
        if text.strip() == "1":
            return await self._process_exchange(session)
        return StepOutcome(None, [msg.cancelled(RequestType.EXCHANGE)])

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------
    async def _process_return(self, session: FlowSession) -> StepOutcome:
        await self._send(session.phone, msg.processing(RequestType.RETURN))

        order: Order = session.data.order
        items = fallback_items(order)
        reason = session.data.reason
        now = self._clock()

        pickup = await arrange_pickup(self.shipping, order, items, reason, now)
        if not pickup.ok:
            return StepOutcome(None, [msg.failed(RequestType.RETURN, pickup.error)])

        record = ReturnRecord(
            return_id=generate_request_id("RET"),
            order_id=order.order_id,
            customer_phone=session.phone,
            items=items,
            reason=reason,
            status=ReturnStatus.INITIATED,
            refund_amount=compute_refund(items),
            refund_status=RefundStatus.PENDING,
            shipping_return_ref=pickup.value.shipping_ref,
            awb=pickup.value.awb,
            pickup_date=pickup.value.pickup_date,
            created_at=now,
        )
        try:
            record = await self.records.create_return(record)
        except RecordStoreError as exc:
            logger.error(
                "Return for order %s booked with shipping ref %s but not stored: %s",
                order.order_id,
                pickup.value.shipping_ref,
                exc,
            )
            return StepOutcome(None, [msg.failed(RequestType.RETURN, str(exc))])

        logger.info("Return %s created for order %s (refund %s)", record.return_id, record.order_id, record.refund_amount)
        return StepOutcome(None, [msg.return_created(record)])

    async def _process_exchange(self, session: FlowSession) -> StepOutcome:
        await self._send(session.phone, msg.processing(RequestType.EXCHANGE))

        order: Order = session.data.order
        old_items = fallback_items(order)
        new_items = self.catalog.resolve(session.data.new_item_description, old_items)
        difference = compute_price_difference(old_items, new_items)
        now = self._clock()

        record = ExchangeRecord(
            exchange_id=generate_request_id("EXC"),
            order_id=order.order_id,
            customer_phone=session.phone,
            old_items=old_items,
            new_items=new_items,
            reason=session.data.reason,
            price_difference=difference,
            payment_status=initial_payment_status(difference),
            status=ExchangeStatus.INITIATED,
            created_at=now,
        )

        # The record is stored only once the provider side has succeeded.
        if difference > 0:
            customer = CustomerContact(
                phone=session.phone,
                name=order.customer_name or "Customer",
                email=order.customer_email,
            )
            link = await self.payments.create_payment_link(difference, order.order_id, customer)
            if not link.ok:
                logger.error("Payment link for order %s failed: %s", order.order_id, link.error)
                return StepOutcome(None, [msg.exchange_payment_link_failed(link.error)])
            record = record.model_copy(
                update={
                    "status": ExchangeStatus.PAYMENT_PENDING,
                    "payment_link_id": link.value.link_ref,
                    "payment_link_url": link.value.url,
                }
            )
        else:
            pickup = await arrange_pickup(self.shipping, order, old_items, record.reason, now)
            if not pickup.ok:
                return StepOutcome(None, [msg.exchange_pickup_failed(pickup.error)])
            record = record.model_copy(
                update={
                    "status": ExchangeStatus.PICKUP_SCHEDULED,
                    "shipping_exchange_ref": pickup.value.shipping_ref,
                    "awb": pickup.value.awb,
                    "pickup_date": pickup.value.pickup_date,
                }
            )

        try:
            record = await self.records.create_exchange(record)
        except RecordStoreError as exc:
            logger.error(
                "Exchange for order %s not stored (link=%s, shipping ref=%s): %s",
                order.order_id,
                record.payment_link_id,
                record.shipping_exchange_ref,
                exc,
            )
            return StepOutcome(None, [msg.failed(RequestType.EXCHANGE, str(exc))])

        logger.info(
            "Exchange %s created for order %s (difference %s, status %s)",
            record.exchange_id,
            record.order_id,
            record.price_difference,
            record.status.value,
        )

        if difference > 0:
            return StepOutcome(
                None,
                [msg.exchange_payment_required(record, record.payment_link_url, settings.PAYMENT_LINK_EXPIRY_HOURS)],
            )
        if difference < 0:
            return StepOutcome(None, [msg.exchange_refund_due(record)])
        return StepOutcome(None, [msg.exchange_no_payment(record)])


StepHandler = Callable[[ReturnExchangeFlow, FlowSession, str], Awaitable[StepOutcome]]

_STEP_HANDLERS: Dict[FlowStep, StepHandler] = {
    FlowStep.AWAITING_ORDER_ID: ReturnExchangeFlow._on_order_id,
    FlowStep.AWAITING_REASON: ReturnExchangeFlow._on_reason,
    FlowStep.AWAITING_ITEM_SELECTION: ReturnExchangeFlow._on_item_selection,
    FlowStep.AWAITING_NEW_ITEM_SELECTION: ReturnExchangeFlow._on_new_item_selection,
}

_missing = set(FlowStep) - set(_STEP_HANDLERS)
if _missing:
    raise RuntimeError(f"Flow steps without a handler: {sorted(s.value for s in _missing)}")
