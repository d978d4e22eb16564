from sqlalchemy import JSON, Column, Date, DateTime, Index, Numeric, String, Text, text

from app.infrastructure.db.base import Base


class OrderRow(Base):
    """Upstream order snapshot; synced in from the storefront, read-only here."""

    __tablename__ = "orders"
    order_id = Column(String(64), primary_key=True)
    status = Column(String(32), nullable=False)
    delivered_at = Column(DateTime(timezone=True))
    customer_name = Column(String(200))
    customer_phone = Column(String(20), index=True)
    customer_email = Column(String(200))
    shipping_address = Column(Text)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    items = Column(JSON, nullable=False, default=list)
    shipping_order_ref = Column(String(64))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class ReturnRow(Base):
    __tablename__ = "returns"
    return_id = Column(String(40), primary_key=True)
    order_id = Column(String(64), nullable=False, index=True)
    customer_phone = Column(String(20), nullable=False)
    items = Column(JSON, nullable=False)
    reason = Column(String(100), nullable=False)
    status = Column(String(32), nullable=False, default="initiated")
    refund_amount = Column(Numeric(12, 2), nullable=False)
    refund_status = Column(String(20), nullable=False, default="pending")
    shipping_return_ref = Column(String(64), index=True)
    awb = Column(String(64))
    pickup_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class ExchangeRow(Base):
    __tablename__ = "exchanges"
    exchange_id = Column(String(40), primary_key=True)
    order_id = Column(String(64), nullable=False, index=True)
    customer_phone = Column(String(20), nullable=False)
    old_items = Column(JSON, nullable=False)
    new_items = Column(JSON, nullable=False)
    reason = Column(String(100), nullable=False)
    price_difference = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(String(20), nullable=False)
    status = Column(String(32), nullable=False, default="initiated")
    payment_link_id = Column(String(64))
    payment_link_url = Column(Text)
    payment_ref = Column(String(64))
    shipping_exchange_ref = Column(String(64), index=True)
    awb = Column(String(64))
    pickup_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        Index("ix_exchanges_order_payment", "order_id", "payment_status"),
    )
