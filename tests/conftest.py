"""Shared test fixtures for the returns bot test suite."""

import asyncio
import itertools
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.domain.models.returns import LineItem, Order
from app.domain.ports import (
    DeliveryReceipt,
    PaymentLink,
    PickupSlot,
    ProviderResult,
    RefundReceipt,
    ShippingReturn,
)
from app.domain.services.catalog import VariantCatalog
from app.domain.services.return_exchange_flow import ReturnExchangeFlow
from app.domain.services.status_notifier import StatusNotifier
from app.infrastructure.cache.session_cache import InMemorySessionStore
from app.infrastructure.db.repositories.memory_store import InMemoryRecordStore

WA_ID = "919999999999"

# 12:00 UTC is 17:30 IST, so "tomorrow" is the same calendar day either way
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TOMORROW = date(2026, 3, 11)
PAY_URL = "https://rzp.io/i/exch200"


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


class FakeMessenger:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_text(self, phone, text):
        self.sent.append((phone, text))
        if self.fail:
            return ProviderResult.failure("WhatsApp API error 500")
        return ProviderResult.success(DeliveryReceipt(message_id=f"wamid.{len(self.sent)}"))

    def texts(self, phone=WA_ID):
        return [text for to, text in self.sent if to == phone]

    @property
    def last(self):
        return self.sent[-1][1] if self.sent else None


class FakeShipping:
    def __init__(self):
        self._seq = itertools.count(1)
        self.created = []
        self.pickups = []
        self.fail_create = None
        self.fail_pickup = None

    async def create_return(self, order, items, reason):
        if self.fail_create:
            return ProviderResult.failure(self.fail_create)
        ref = f"SR-{next(self._seq)}"
        self.created.append((ref, order.order_id, list(items), reason))
        return ProviderResult.success(ShippingReturn(return_ref=ref, awb=f"AWB-{ref}"))

    async def schedule_pickup(self, return_ref, address, pickup_date):
        if self.fail_pickup:
            return ProviderResult.failure(self.fail_pickup)
        self.pickups.append((return_ref, address, pickup_date))
        return ProviderResult.success(PickupSlot(pickup_date=pickup_date))


class FakePayments:
    def __init__(self):
        self.links = []
        self.fail = None

    async def create_payment_link(self, amount, order_id, customer):
        if self.fail:
            return ProviderResult.failure(self.fail)
        self.links.append((amount, order_id, customer))
        return ProviderResult.success(
            PaymentLink(link_ref=f"plink_{len(self.links)}", url=PAY_URL, expires_at=NOW + timedelta(hours=24))
        )

    async def refund(self, payment_ref, amount, notes=None):
        return ProviderResult.success(RefundReceipt(refund_id="rfnd_1", amount=amount, status="processed"))

    def verify_webhook_signature(self, raw_body, signature):
        return signature == "valid"


def make_order(order_id, delivered_days_ago, status="delivered", price="1000", items=None, total=None):
    if items is None:
        items = [LineItem(sku="TSH-RED-M", name="Classic Tee - Red", price=Decimal(price), quantity=1)]
    return Order(
        order_id=order_id,
        status=status,
        delivered_at=NOW - timedelta(days=delivered_days_ago) if delivered_days_ago is not None else None,
        customer_name="Asha Verma",
        customer_phone=WA_ID,
        customer_email="asha@example.com",
        shipping_address="12 MG Road, Bengaluru 560001",
        total_amount=Decimal(total) if total is not None else sum((i.price * i.quantity for i in items), Decimal("0")),
        items=items,
    )


@pytest.fixture
def records():
    return InMemoryRecordStore(
        [
            make_order("ORD-1001", 2),
            make_order("ORD-2002", 10),
            make_order("ORD-3003", None, status="shipped"),
            make_order("ORD-4004", 1, items=[], total="1500"),
        ]
    )


@pytest.fixture
def sessions():
    return InMemorySessionStore(idle_timeout_seconds=1800)


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def shipping():
    return FakeShipping()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def flow(sessions, records, shipping, payments, messenger):
    return ReturnExchangeFlow(
        sessions=sessions,
        records=records,
        shipping=shipping,
        payments=payments,
        messenger=messenger,
        catalog=VariantCatalog({"TSH-BLU-L": 1200, "TSH-GRN-S": 800}),
        clock=lambda: NOW,
    )


@pytest.fixture
def notifier(records, shipping, messenger):
    return StatusNotifier(records=records, shipping=shipping, messenger=messenger, clock=lambda: NOW)
