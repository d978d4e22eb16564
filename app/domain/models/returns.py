from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RequestType(str, Enum):
    RETURN = "return"
    EXCHANGE = "exchange"


class ReturnStatus(str, Enum):
    INITIATED = "initiated"
    PICKUP_SCHEDULED = "pickup_scheduled"
    PICKED_UP = "picked_up"
    DELIVERED_TO_WAREHOUSE = "delivered_to_warehouse"
    QC_PASSED = "qc_passed"
    QC_FAILED = "qc_failed"
    REFUND_PROCESSED = "refund_processed"
    COMPLETED = "completed"


class ExchangeStatus(str, Enum):
    INITIATED = "initiated"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_COMPLETED = "payment_completed"
    PICKUP_SCHEDULED = "pickup_scheduled"
    PICKED_UP = "picked_up"
    QC_PASSED = "qc_passed"
    QC_FAILED = "qc_failed"
    NEW_ORDER_CREATED = "new_order_created"
    COMPLETED = "completed"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class LineItem(BaseModel):
    sku: str
    name: str
    price: Decimal = Field(default=Decimal("0"))
    quantity: int = 1


class Order(BaseModel):
    """Read-only snapshot of an upstream order."""

    model_config = ConfigDict(from_attributes=True)

    order_id: str
    status: str
    delivered_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    shipping_address: Optional[str] = None
    total_amount: Decimal = Field(default=Decimal("0"))
    items: List[LineItem] = Field(default_factory=list)
    shipping_order_ref: Optional[str] = None


class ReturnRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    return_id: str
    order_id: str
    customer_phone: str
    items: List[LineItem]
    reason: str
    status: ReturnStatus = ReturnStatus.INITIATED
    refund_amount: Decimal
    refund_status: RefundStatus = RefundStatus.PENDING
    shipping_return_ref: Optional[str] = None
    awb: Optional[str] = None
    pickup_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExchangeRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    exchange_id: str
    order_id: str
    customer_phone: str
    old_items: List[LineItem]
    new_items: List[LineItem]
    reason: str
    price_difference: Decimal
    payment_status: PaymentStatus
    status: ExchangeStatus = ExchangeStatus.INITIATED
    payment_link_id: Optional[str] = None
    payment_link_url: Optional[str] = None
    payment_ref: Optional[str] = None
    shipping_exchange_ref: Optional[str] = None
    awb: Optional[str] = None
    pickup_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
