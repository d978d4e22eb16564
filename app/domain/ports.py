# app/domain/ports.py
"""
Contracts of the collaborators the return/exchange core talks to.

Provider calls (messaging, shipping, payments) never raise for a
provider-side failure; they return a ``ProviderResult`` and every call
site decides what to do with both outcomes.  The record store raises
``RecordStoreError`` only for transport/storage failures and returns
``None`` for "not found".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, AsyncContextManager, Generic, List, Optional, Protocol, TypeVar

from app.domain.models.conversation import FlowSession
from app.domain.models.returns import (
    ExchangeRecord,
    LineItem,
    Order,
    ReturnRecord,
)

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "ProviderResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ProviderResult[T]":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ShippingReturn:
    return_ref: str
    awb: Optional[str] = None


@dataclass(frozen=True)
class PickupSlot:
    pickup_date: date
    awb: Optional[str] = None


@dataclass(frozen=True)
class PaymentLink:
    link_ref: str
    url: str
    expires_at: datetime


@dataclass(frozen=True)
class RefundReceipt:
    refund_id: str
    amount: Decimal
    status: str


@dataclass(frozen=True)
class CustomerContact:
    phone: str
    name: str = "Customer"
    email: Optional[str] = None


class RecordStoreError(Exception):
    """Raised when the record store cannot be reached or refuses a write."""


class Messenger(Protocol):
    async def send_text(self, phone: str, text: str) -> ProviderResult[DeliveryReceipt]: ...


class ShippingProvider(Protocol):
    async def create_return(
        self, order: Order, items: List[LineItem], reason: str
    ) -> ProviderResult[ShippingReturn]: ...

    async def schedule_pickup(
        self, return_ref: str, address: Optional[str], pickup_date: date
    ) -> ProviderResult[PickupSlot]: ...


class PaymentProvider(Protocol):
    async def create_payment_link(
        self, amount: Decimal, order_id: str, customer: CustomerContact
    ) -> ProviderResult[PaymentLink]: ...

    async def refund(
        self, payment_ref: str, amount: Decimal, notes: Optional[dict] = None
    ) -> ProviderResult[RefundReceipt]: ...

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool: ...


class RecordStore(Protocol):
    async def find_order_by_id(self, order_id: str) -> Optional[Order]: ...

    async def create_return(self, record: ReturnRecord) -> ReturnRecord: ...

    async def create_exchange(self, record: ExchangeRecord) -> ExchangeRecord: ...

    async def find_return_by_id(self, return_id: str) -> Optional[ReturnRecord]: ...

    async def find_exchange_by_id(self, exchange_id: str) -> Optional[ExchangeRecord]: ...

    async def find_return_by_shipping_ref(self, ref: str) -> Optional[ReturnRecord]: ...

    async def find_exchange_by_shipping_ref(self, ref: str) -> Optional[ExchangeRecord]: ...

    async def find_pending_exchange_for_order(self, order_id: str) -> Optional[ExchangeRecord]: ...

    async def has_open_request(self, order_id: str) -> bool: ...

    async def update_return_status(
        self, return_id: str, status: str, **fields: Any
    ) -> Optional[ReturnRecord]: ...

    async def update_exchange_status(
        self, exchange_id: str, status: str, **fields: Any
    ) -> Optional[ExchangeRecord]: ...


class SessionCorrupted(Exception):
    """Raised by a session store when a stored dialogue can't be decoded."""


class SessionStore(Protocol):
    async def get(self, phone: str) -> Optional[FlowSession]: ...

    async def save(self, session: FlowSession) -> None: ...

    async def clear(self, phone: str) -> None: ...

    def lock(self, phone: str) -> AsyncContextManager[Any]: ...


class Catalog(Protocol):
    def resolve(self, description: str, old_items: List[LineItem]) -> List[LineItem]: ...
