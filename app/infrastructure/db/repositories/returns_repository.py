# app/infrastructure/db/repositories/returns_repository.py
"""SQL-backed record store for orders, returns and exchanges."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.db import AsyncSessionLocal
from app.domain.models.returns import ExchangeRecord, LineItem, Order, PaymentStatus, ReturnRecord
from app.domain.ports import RecordStoreError
from app.domain.services.return_policy import EXCHANGE_TRANSITIONS, RETURN_TRANSITIONS
from app.infrastructure.db.models import ExchangeRow, OrderRow, ReturnRow

logger = logging.getLogger("returns_repository")

RETURN_CLOSED = sorted(s.value for s, nxt in RETURN_TRANSITIONS.items() if not nxt)
EXCHANGE_CLOSED = sorted(s.value for s, nxt in EXCHANGE_TRANSITIONS.items() if not nxt)

_ITEM_COLUMNS = ("items", "old_items", "new_items")


def items_to_json(items: Sequence[LineItem]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def _row_dict(row: Any) -> dict[str, Any]:
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


def _column_value(key: str, value: Any) -> Any:
    if key in _ITEM_COLUMNS:
        return items_to_json([LineItem.model_validate(i) for i in value])
    # enum members are stored by value
    return getattr(value, "value", value)


class SqlRecordStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or AsyncSessionLocal

    @asynccontextmanager
    async def _db(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as db:
                yield db
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Record store failure: %s", exc)
            raise RecordStoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    async def find_order_by_id(self, order_id: str) -> Optional[Order]:
        async with self._db() as db:
            result = await db.execute(select(OrderRow).where(OrderRow.order_id == order_id))
            row = result.scalar_one_or_none()
        return Order.model_validate(_row_dict(row)) if row else None

    # ------------------------------------------------------------------
    # Returns
    # ------------------------------------------------------------------
    async def create_return(self, record: ReturnRecord) -> ReturnRecord:
        data = record.model_dump(exclude_none=True)
        row = ReturnRow(**{k: _column_value(k, v) for k, v in data.items()})
        async with self._db() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
        return ReturnRecord.model_validate(_row_dict(row))

    async def find_return_by_id(self, return_id: str) -> Optional[ReturnRecord]:
        return await self._one_return(ReturnRow.return_id == return_id)

    async def find_return_by_shipping_ref(self, ref: str) -> Optional[ReturnRecord]:
        return await self._one_return(ReturnRow.shipping_return_ref == ref)

    async def _one_return(self, clause) -> Optional[ReturnRecord]:
        async with self._db() as db:
            stmt = select(ReturnRow).where(clause).order_by(ReturnRow.created_at.desc()).limit(1)
            row = (await db.execute(stmt)).scalar_one_or_none()
        return ReturnRecord.model_validate(_row_dict(row)) if row else None

    async def update_return_status(
        self, return_id: str, status: str, **fields: Any
    ) -> Optional[ReturnRecord]:
        return await self._update(ReturnRow, ReturnRow.return_id == return_id, ReturnRecord, status=status, **fields)

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------
    async def create_exchange(self, record: ExchangeRecord) -> ExchangeRecord:
        data = record.model_dump(exclude_none=True)
        row = ExchangeRow(**{k: _column_value(k, v) for k, v in data.items()})
        async with self._db() as db:
            db.add(row)
            await db.commit()
            await db.refresh(row)
        return ExchangeRecord.model_validate(_row_dict(row))

    async def find_exchange_by_id(self, exchange_id: str) -> Optional[ExchangeRecord]:
        return await self._one_exchange(ExchangeRow.exchange_id == exchange_id)

    async def find_exchange_by_shipping_ref(self, ref: str) -> Optional[ExchangeRecord]:
        return await self._one_exchange(ExchangeRow.shipping_exchange_ref == ref)

    async def find_pending_exchange_for_order(self, order_id: str) -> Optional[ExchangeRecord]:
        return await self._one_exchange(
            ExchangeRow.order_id == order_id,
            ExchangeRow.payment_status == PaymentStatus.PENDING.value,
        )

    async def _one_exchange(self, *clauses) -> Optional[ExchangeRecord]:
        async with self._db() as db:
            stmt = select(ExchangeRow).where(*clauses).order_by(ExchangeRow.created_at.desc()).limit(1)
            row = (await db.execute(stmt)).scalar_one_or_none()
        return ExchangeRecord.model_validate(_row_dict(row)) if row else None

    async def update_exchange_status(
        self, exchange_id: str, status: str, **fields: Any
    ) -> Optional[ExchangeRecord]:
        return await self._update(
            ExchangeRow, ExchangeRow.exchange_id == exchange_id, ExchangeRecord, status=status, **fields
        )

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------
    async def has_open_request(self, order_id: str) -> bool:
        async with self._db() as db:
            open_return = await db.execute(
                select(ReturnRow.return_id)
                .where(ReturnRow.order_id == order_id, ReturnRow.status.not_in(RETURN_CLOSED))
                .limit(1)
            )
            if open_return.scalar_one_or_none() is not None:
                return True
            open_exchange = await db.execute(
                select(ExchangeRow.exchange_id)
                .where(
                    ExchangeRow.order_id == order_id,
                    ExchangeRow.status.not_in(EXCHANGE_CLOSED),
                )
                .limit(1)
            )
            return open_exchange.scalar_one_or_none() is not None

    async def _update(self, row_cls, clause, model_cls, **fields: Any):
        async with self._db() as db:
            row = (await db.execute(select(row_cls).where(clause))).scalar_one_or_none()
            if row is None:
                return None
            for key, value in fields.items():
                if not hasattr(row_cls, key):
                    raise RecordStoreError(f"{row_cls.__tablename__} has no column {key!r}")
                setattr(row, key, _column_value(key, value))
            row.updated_at = datetime.now(timezone.utc)
            await db.commit()
            await db.refresh(row)
        return model_cls.model_validate(_row_dict(row))
