# app/domain/services/pickup_service.py
"""
Reverse-pickup coordination with the shipping provider.

Creating the provider-side return and booking the courier are two calls;
if the second one fails the first has already happened, so the provider
reference is logged for manual follow-up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from app.domain.models.returns import ExchangeRecord, ExchangeStatus, LineItem, Order
from app.domain.ports import ProviderResult, RecordStore, RecordStoreError, ShippingProvider
from app.domain.services.return_policy import next_pickup_date

logger = logging.getLogger("pickup_service")


@dataclass(frozen=True)
class PickupArrangement:
    shipping_ref: str
    pickup_date: date
    awb: Optional[str] = None


async def arrange_pickup(
    shipping: ShippingProvider,
    order: Order,
    items: List[LineItem],
    reason: str,
    now: Optional[datetime] = None,
) -> ProviderResult[PickupArrangement]:
    """Create the provider return for ``items`` and schedule its pickup."""
    created = await shipping.create_return(order, items, reason)
    if not created.ok:
        logger.error("Shipping return creation failed for order %s: %s", order.order_id, created.error)
        return ProviderResult.failure(created.error or "Shipping return creation failed")

    ref = created.value.return_ref
    pickup = await shipping.schedule_pickup(ref, order.shipping_address, next_pickup_date(now))
    if not pickup.ok:
        logger.error(
            "Pickup scheduling failed for order %s (shipping return %s needs manual follow-up): %s",
            order.order_id,
            ref,
            pickup.error,
        )
        return ProviderResult.failure(pickup.error or "Pickup scheduling failed")

    return ProviderResult.success(
        PickupArrangement(
            shipping_ref=ref,
            pickup_date=pickup.value.pickup_date,
            awb=pickup.value.awb or created.value.awb,
        )
    )


async def schedule_exchange_pickup(
    shipping: ShippingProvider,
    records: RecordStore,
    order: Order,
    exchange: ExchangeRecord,
    now: Optional[datetime] = None,
) -> ProviderResult[ExchangeRecord]:
    """Book the pickup of the old items and move the exchange to pickup_scheduled."""
    arranged = await arrange_pickup(shipping, order, exchange.old_items, exchange.reason, now)
    if not arranged.ok:
        return ProviderResult.failure(arranged.error)

    fields = {
        "shipping_exchange_ref": arranged.value.shipping_ref,
        "awb": arranged.value.awb,
        "pickup_date": arranged.value.pickup_date,
    }
    try:
        updated = await records.update_exchange_status(
            exchange.exchange_id, ExchangeStatus.PICKUP_SCHEDULED.value, **fields
        )
    except RecordStoreError as exc:
        logger.error(
            "Exchange %s pickup booked with shipping ref %s but not stored: %s",
            exchange.exchange_id,
            arranged.value.shipping_ref,
            exc,
        )
        updated = None

    if updated is None:
        updated = exchange.model_copy(update={"status": ExchangeStatus.PICKUP_SCHEDULED, **fields})
    return ProviderResult.success(updated)
