# app/infrastructure/external/shiprocket_sandbox.py

import itertools
from datetime import date
from typing import Any, Dict, List, Optional

from loguru import logger

from app.domain.models.returns import LineItem, Order
from app.domain.ports import PickupSlot, ProviderResult, ShippingReturn


class SandboxShippingClient:
    """
    Stand-in for Shiprocket in local runs (SHIPPING_BACKEND=sandbox).
    Every call succeeds with predictable references: SR-SBX-1, SR-SBX-2, ...
    """

    def __init__(self, start: int = 1) -> None:
        self._seq = itertools.count(start)
        self.returns: Dict[str, Dict[str, Any]] = {}

    async def create_return(
        self, order: Order, items: List[LineItem], reason: str
    ) -> ProviderResult[ShippingReturn]:
        n = next(self._seq)
        ref = f"SR-SBX-{n}"
        awb = f"SBX{n:08d}"
        self.returns[ref] = {"order_id": order.order_id, "reason": reason, "units": sum(i.quantity for i in items)}
        logger.info("Sandbox return {} created for order {}", ref, order.order_id)
        return ProviderResult.success(ShippingReturn(return_ref=ref, awb=awb))

    async def schedule_pickup(
        self, return_ref: str, address: Optional[str], pickup_date: date
    ) -> ProviderResult[PickupSlot]:
        if return_ref not in self.returns:
            return ProviderResult.failure(f"Unknown sandbox return {return_ref}")
        self.returns[return_ref]["pickup_date"] = pickup_date
        logger.info("Sandbox pickup for {} on {}", return_ref, pickup_date.isoformat())
        return ProviderResult.success(PickupSlot(pickup_date=pickup_date))

    async def get_tracking(self, awb: str) -> ProviderResult[List[Dict[str, Any]]]:
        return ProviderResult.success(
            [{"date": None, "location": "Sandbox hub", "activity": "Pickup scheduled", "status": "PICKUP SCHEDULED"}]
        )
