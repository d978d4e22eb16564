# app/infrastructure/db/repositories/memory_store.py
"""Record store kept in process memory (local runs and tests)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from app.domain.models.returns import ExchangeRecord, Order, PaymentStatus, RequestType, ReturnRecord
from app.domain.ports import RecordStoreError
from app.domain.services.return_policy import is_open


class InMemoryRecordStore:
    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self.orders: Dict[str, Order] = {o.order_id: o for o in orders}
        self.returns: Dict[str, ReturnRecord] = {}
        self.exchanges: Dict[str, ExchangeRecord] = {}

    def add_order(self, order: Order) -> None:
        self.orders[order.order_id] = order

    async def find_order_by_id(self, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def create_return(self, record: ReturnRecord) -> ReturnRecord:
        now = datetime.now(timezone.utc)
        stored = record.model_copy(
            deep=True, update={"created_at": record.created_at or now, "updated_at": now}
        )
        self.returns[stored.return_id] = stored
        return stored.model_copy(deep=True)

    async def create_exchange(self, record: ExchangeRecord) -> ExchangeRecord:
        now = datetime.now(timezone.utc)
        stored = record.model_copy(
            deep=True, update={"created_at": record.created_at or now, "updated_at": now}
        )
        self.exchanges[stored.exchange_id] = stored
        return stored.model_copy(deep=True)

    async def find_return_by_id(self, return_id: str) -> Optional[ReturnRecord]:
        record = self.returns.get(return_id)
        return record.model_copy(deep=True) if record else None

    async def find_exchange_by_id(self, exchange_id: str) -> Optional[ExchangeRecord]:
        record = self.exchanges.get(exchange_id)
        return record.model_copy(deep=True) if record else None

    async def find_return_by_shipping_ref(self, ref: str) -> Optional[ReturnRecord]:
        for record in self.returns.values():
            if record.shipping_return_ref == ref:
                return record.model_copy(deep=True)
        return None

    async def find_exchange_by_shipping_ref(self, ref: str) -> Optional[ExchangeRecord]:
        for record in self.exchanges.values():
            if record.shipping_exchange_ref == ref:
                return record.model_copy(deep=True)
        return None

    async def find_pending_exchange_for_order(self, order_id: str) -> Optional[ExchangeRecord]:
        pending = [
            e for e in self.exchanges.values()
            if e.order_id == order_id and e.payment_status == PaymentStatus.PENDING
        ]
        if not pending:
            return None
        latest = max(pending, key=lambda e: e.created_at or datetime.min.replace(tzinfo=timezone.utc))
        return latest.model_copy(deep=True)

    async def has_open_request(self, order_id: str) -> bool:
        return any(
            r.order_id == order_id and is_open(RequestType.RETURN, r.status.value)
            for r in self.returns.values()
        ) or any(
            e.order_id == order_id and is_open(RequestType.EXCHANGE, e.status.value)
            for e in self.exchanges.values()
        )

    async def update_return_status(self, return_id: str, status: str, **fields: Any) -> Optional[ReturnRecord]:
        return self._update(self.returns, return_id, status=status, **fields)

    async def update_exchange_status(
        self, exchange_id: str, status: str, **fields: Any
    ) -> Optional[ExchangeRecord]:
        return self._update(self.exchanges, exchange_id, status=status, **fields)

    def _update(self, table: Dict[str, Any], key: str, **fields: Any):
        record = table.get(key)
        if record is None:
            return None
        unknown = set(fields) - set(type(record).model_fields)
        if unknown:
            raise RecordStoreError(f"unknown fields {sorted(unknown)}")
        data = record.model_dump()
        data.update(fields)
        data["updated_at"] = datetime.now(timezone.utc)
        updated = type(record).model_validate(data)
        table[key] = updated
        return updated.model_copy(deep=True)
