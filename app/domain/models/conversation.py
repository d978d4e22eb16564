from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from app.domain.models.returns import Order, RequestType


class FlowStep(str, Enum):
    AWAITING_ORDER_ID = "awaiting_order_id"
    AWAITING_REASON = "awaiting_reason"
    AWAITING_ITEM_SELECTION = "awaiting_item_selection"
    AWAITING_NEW_ITEM_SELECTION = "awaiting_new_item_selection"


class FlowData(BaseModel):
    order_id: Optional[str] = None
    order: Optional[Order] = None
    reason: Optional[str] = None
    new_item_description: Optional[str] = None
    days_remaining: Optional[int] = None


class FlowSession(BaseModel):
    """One open return/exchange dialogue, keyed by the customer's phone."""

    phone: str
    type: RequestType
    step: FlowStep
    data: FlowData = Field(default_factory=FlowData)
    last_active_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def touch(self) -> None:
        self.last_active_at = datetime.now(timezone.utc)
