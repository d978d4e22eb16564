# app/domain/services/return_messages.py
"""Customer-facing WhatsApp texts for the return / exchange flow."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from app.core.config import settings
from app.domain.models.returns import (
    ExchangeRecord,
    ExchangeStatus,
    LineItem,
    RequestType,
    ReturnRecord,
    ReturnStatus,
)

REASONS = {
    "1": "Wrong size",
    "2": "Defective/Damaged",
    "3": "Wrong item received",
    "4": "Quality issues",
    "5": "Changed mind",
    "6": "Other",
}

STATUS_EMOJIS = {
    "initiated": "\U0001f504",
    "payment_pending": "\U0001f4b3",
    "payment_completed": "\U0001f4b3",
    "pickup_scheduled": "\U0001f4c5",
    "picked_up": "\U0001f4e6",
    "delivered_to_warehouse": "\U0001f3ed",
    "qc_passed": "✅",
    "qc_failed": "❌",
    "refund_processed": "\U0001f4b0",
    "new_order_created": "\U0001f4e6",
    "completed": "✅",
}

RETURN_STATUS_MESSAGES = {
    ReturnStatus.PICKUP_SCHEDULED: (
        "\U0001f4c5 *Pickup Scheduled*\n\n"
        "Your return pickup is scheduled. Please keep items ready with original packaging."
    ),
    ReturnStatus.PICKED_UP: (
        "\U0001f4e6 *Items Picked Up*\n\n"
        "Your return items have been picked up and are on their way to our warehouse."
    ),
    ReturnStatus.DELIVERED_TO_WAREHOUSE: (
        "\U0001f3ed *Received at Warehouse*\n\n"
        "Your items have reached our warehouse. Quality check in progress."
    ),
    ReturnStatus.QC_PASSED: (
        "✅ *Quality Check Passed*\n\n"
        "Your return has been approved. Refund will be processed within 3-5 business days."
    ),
    ReturnStatus.QC_FAILED: (
        "❌ *Quality Check Failed*\n\n"
        "Your return could not be approved. Items will be sent back to you. "
        "Please contact support for details."
    ),
    ReturnStatus.REFUND_PROCESSED: (
        "\U0001f4b0 *Refund Processed*\n\n"
        "Your refund of {refund} has been initiated. "
        "It will reflect in your account within 5-7 business days."
    ),
    ReturnStatus.COMPLETED: (
        "✅ *Return Completed*\n\n"
        "Your return has been successfully completed. Thank you!"
    ),
}

EXCHANGE_STATUS_MESSAGES = {
    ExchangeStatus.PICKUP_SCHEDULED: (
        "\U0001f4c5 *Pickup Scheduled*\n\n"
        "Your exchange pickup is scheduled. Please keep old items ready."
    ),
    ExchangeStatus.PICKED_UP: (
        "\U0001f4e6 *Items Picked Up*\n\n"
        "Your old items have been picked up. Quality check in progress."
    ),
    ExchangeStatus.QC_PASSED: (
        "✅ *Quality Check Passed*\n\n"
        "Your exchange has been approved. New items will be shipped shortly!"
    ),
    ExchangeStatus.QC_FAILED: (
        "❌ *Quality Check Failed*\n\n"
        "Your exchange could not be approved. Please contact support."
    ),
    ExchangeStatus.NEW_ORDER_CREATED: (
        "\U0001f4e6 *New Order Created*\n\n"
        "Your new items have been shipped! You'll receive tracking details soon."
    ),
    ExchangeStatus.COMPLETED: (
        "✅ *Exchange Completed*\n\n"
        "Your exchange has been successfully completed. Enjoy your new items!"
    ),
}


def format_currency(value: Decimal | float | int) -> str:
    """Format a number as Indian-rupee string, dropping ``.00``."""
    amount = Decimal(value)
    if amount == amount.to_integral_value():
        return f"₹{int(amount):,}"
    return f"₹{amount:,.2f}"


def format_date(value: Optional[date | datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%d %b %Y")


def _support_line() -> str:
    return f"Please contact support ({settings.SUPPORT_CONTACT}) if you need assistance."


def start_prompt(kind: RequestType) -> str:
    title = "Return" if kind == RequestType.RETURN else "Exchange"
    return (
        f"\U0001f504 *{title} Request*\n\n"
        f"Please send your *Order ID* to initiate the {kind.value} process.\n\n"
        "Example: ORD-2024-001"
    )


def empty_order_id() -> str:
    return "❌ Please send a valid Order ID.\n\nExample: ORD-2024-001"


def ineligible(reason: str) -> str:
    return f"❌ {reason}\n\n{_support_line()}"


def already_open(order_id: str) -> str:
    return (
        f"⚠️ A return or exchange is already in progress for order {order_id}.\n\n"
        "Reply \"return status <ID>\" or \"exchange status <ID>\" to track it.\n\n"
        f"{_support_line()}"
    )


def reason_menu(order_id: str, days_remaining: int, kind: RequestType) -> str:
    return (
        "✅ Order found!\n\n"
        f"\U0001f4e6 Order: {order_id}\n"
        f"⏰ {days_remaining} days remaining for {kind.value}\n\n"
        "*Select reason:*\n\n"
        "1️⃣ Wrong size\n"
        "2️⃣ Defective/Damaged\n"
        "3️⃣ Wrong item received\n"
        "4️⃣ Quality issues\n"
        "5️⃣ Changed mind\n"
        "6️⃣ Other\n\n"
        "Reply with the number (1-6)"
    )


def invalid_reason() -> str:
    return "❌ Invalid selection. Please reply with a number from 1-6."


def confirm_return(reason: str, items: list[LineItem]) -> str:
    lines = "\n".join(
        f"• {item.name} x{item.quantity} ({format_currency(item.price)})" for item in items
    )
    return (
        f"\U0001f4dd Reason: {reason}\n\n"
        f"{lines}\n\n"
        "*Confirm return of all items?*\n\n"
        "1️⃣ Yes, return all items\n"
        "2️⃣ Cancel\n\n"
        "Reply with 1 or 2"
    )


def ask_new_item(reason: str) -> str:
    return (
        f"\U0001f4dd Reason: {reason}\n\n"
        "*What would you like to exchange?*\n\n"
        "Please describe the new size/product you want.\n\n"
        "Example: \"Size L instead of M\" or \"Blue color instead of Red\""
    )


def empty_new_item() -> str:
    return "❌ Please describe the size/product you want instead."


def confirm_exchange(description: str) -> str:
    return (
        f"✅ Exchange request noted: \"{description}\"\n\n"
        "*Price difference:*\n\n"
        "If the new item costs more, you'll receive a payment link.\n"
        "If it costs less, you'll get a refund.\n\n"
        "*Confirm exchange?*\n\n"
        "1️⃣ Yes, proceed\n"
        "2️⃣ Cancel\n\n"
        "Reply with 1 or 2"
    )


def cancelled(kind: RequestType) -> str:
    return f"❌ {kind.value.capitalize()} cancelled."


def processing(kind: RequestType) -> str:
    return f"⏳ Processing your {kind.value} request..."


def session_expired() -> str:
    return "Session expired. Please start again."


def failed(kind: RequestType, error: Optional[str]) -> str:
    return (
        f"❌ Failed to create {kind.value}: {error or 'unexpected error'}\n\n"
        f"{_support_line()}"
    )


def return_created(record: ReturnRecord) -> str:
    pickup = format_date(record.pickup_date)
    return (
        "✅ *Return Request Created!*\n\n"
        f"\U0001f504 Return ID: {record.return_id}\n"
        f"\U0001f4e6 Order ID: {record.order_id}\n"
        f"\U0001f4c5 Pickup Date: {pickup}\n"
        f"\U0001f4b0 Refund Amount: {format_currency(record.refund_amount)}\n\n"
        "\U0001f4cd *Next Steps:*\n"
        "1. Keep items ready with original packaging\n"
        f"2. Courier will pick up on {pickup}\n"
        "3. Refund processed after quality check (3-5 days)\n\n"
        f"\U0001f4ca Track status: Reply \"return status {record.return_id}\""
    )


def _price_lines(record: ExchangeRecord, label: str, amount: Decimal) -> str:
    old_total = sum((i.price * i.quantity for i in record.old_items), Decimal("0"))
    new_total = sum((i.price * i.quantity for i in record.new_items), Decimal("0"))
    return (
        f"Old Item: {format_currency(old_total)}\n"
        f"New Item: {format_currency(new_total)}\n"
        f"{label}: {format_currency(amount)}"
    )


def exchange_payment_required(record: ExchangeRecord, url: str, expiry_hours: int) -> str:
    return (
        "\U0001f504 *Exchange Request Created!*\n\n"
        f"\U0001f194 Exchange ID: {record.exchange_id}\n"
        f"\U0001f4e6 Order ID: {record.order_id}\n\n"
        "\U0001f4b0 *Payment Required:*\n"
        f"{_price_lines(record, 'Balance', record.price_difference)}\n\n"
        f"\U0001f4b3 *Pay Now:*\n{url}\n\n"
        f"⏰ Link expires in {expiry_hours} hours\n\n"
        "✅ After payment:\n"
        "• Pickup scheduled automatically\n"
        "• New item ships after quality check"
    )


def exchange_payment_link_failed(error: Optional[str]) -> str:
    return (
        f"❌ Failed to generate payment link: {error or 'unexpected error'}\n\n"
        "Your exchange was not created. Reply *exchange* to try again.\n\n"
        f"{_support_line()}"
    )


def exchange_refund_due(record: ExchangeRecord) -> str:
    return (
        "✅ *Exchange Request Created!*\n\n"
        f"\U0001f194 Exchange ID: {record.exchange_id}\n"
        f"\U0001f4e6 Order ID: {record.order_id}\n\n"
        "\U0001f4b0 *Refund Due:*\n"
        f"{_price_lines(record, 'Refund', abs(record.price_difference))}\n\n"
        f"\U0001f4c5 Pickup Date: {format_date(record.pickup_date)}\n"
        "\U0001f4b8 Refund processed after pickup and quality check"
    )


def exchange_no_payment(record: ExchangeRecord) -> str:
    return (
        "✅ *Exchange Request Created!*\n\n"
        f"\U0001f194 Exchange ID: {record.exchange_id}\n"
        f"\U0001f4e6 Order ID: {record.order_id}\n\n"
        "✨ No payment required (same price)\n"
        f"\U0001f4c5 Pickup Date: {format_date(record.pickup_date)}"
    )


def exchange_pickup_failed(error: Optional[str]) -> str:
    return (
        f"❌ Pickup could not be scheduled: {error or 'unexpected error'}\n\n"
        "Your exchange was not created. Reply *exchange* to try again.\n\n"
        f"{_support_line()}"
    )


def status_usage() -> str:
    return "\U0001f4ca Reply \"return status <Return ID>\" or \"exchange status <Exchange ID>\"."


def not_found(kind: RequestType, request_id: str) -> str:
    return f"❌ {kind.value.capitalize()} not found: {request_id}"


def status_lookup_failed() -> str:
    return f"⚠️ We couldn't look that up right now. {_support_line()}"


def status_summary(kind: RequestType, record: ReturnRecord | ExchangeRecord) -> str:
    status = record.status.value
    emoji = STATUS_EMOJIS.get(status, "\U0001f4ca")
    request_id = record.return_id if isinstance(record, ReturnRecord) else record.exchange_id
    if isinstance(record, ReturnRecord):
        money = (
            f"\U0001f4b0 Refund: {format_currency(record.refund_amount)}\n"
            f"\U0001f4b3 Refund Status: {record.refund_status.value}"
        )
    else:
        difference = record.price_difference
        if difference > 0:
            label = "Balance Due"
        elif difference < 0:
            label = "Refund Due"
        else:
            label = "Price Difference"
        money = (
            f"\U0001f4b0 {label}: {format_currency(abs(difference))}\n"
            f"\U0001f4b3 Payment: {record.payment_status.value}"
        )
    return (
        f"{emoji} *{kind.value.upper()} Status*\n\n"
        f"\U0001f194 ID: {request_id}\n"
        f"\U0001f4e6 Order: {record.order_id}\n"
        f"\U0001f4ca Status: {status.replace('_', ' ').upper()}\n\n"
        f"{money}\n\n"
        f"\U0001f4c5 Created: {format_date(record.created_at)}"
    )


def return_status_update(record: ReturnRecord, status: ReturnStatus) -> Optional[str]:
    template = RETURN_STATUS_MESSAGES.get(status)
    if template is None:
        return None
    body = template.format(refund=format_currency(record.refund_amount))
    return f"\U0001f504 Return ID: {record.return_id}\n\n{body}"


def exchange_status_update(record: ExchangeRecord, status: ExchangeStatus) -> Optional[str]:
    template = EXCHANGE_STATUS_MESSAGES.get(status)
    if template is None:
        return None
    return f"\U0001f504 Exchange ID: {record.exchange_id}\n\n{template}"


def payment_received(record: ExchangeRecord, payment_ref: str) -> str:
    pickup = format_date(record.pickup_date)
    return (
        "✅ *Payment Received!*\n\n"
        f"\U0001f4b3 Payment ID: {payment_ref}\n"
        f"\U0001f504 Exchange ID: {record.exchange_id}\n\n"
        f"\U0001f4c5 Pickup scheduled for: {pickup}\n\n"
        "\U0001f4e6 Next Steps:\n"
        "1. Keep old items ready\n"
        f"2. Courier will pick up on {pickup}\n"
        "3. New items ship after quality check\n\n"
        f"Track status: Reply \"exchange status {record.exchange_id}\""
    )


def payment_received_pickup_pending(record: ExchangeRecord, payment_ref: str) -> str:
    return (
        "✅ *Payment Received!*\n\n"
        f"\U0001f4b3 Payment ID: {payment_ref}\n"
        f"\U0001f504 Exchange ID: {record.exchange_id}\n\n"
        "⚠️ We couldn't schedule your pickup automatically. "
        f"Our team will arrange it shortly. {_support_line()}"
    )


def payment_failed(record: ExchangeRecord, error_text: Optional[str]) -> str:
    return (
        "❌ *Payment Failed*\n\n"
        f"\U0001f504 Exchange ID: {record.exchange_id}\n\n"
        "Your payment could not be processed. Please try again or contact support.\n\n"
        f"Reason: {error_text or 'Payment declined'}"
    )


def help_text() -> str:
    return (
        "\U0001f44b Need help with an order?\n\n"
        "• Reply *return* to return a delivered order\n"
        "• Reply *exchange* to exchange for another size/product\n"
        "• Reply *return status <ID>* or *exchange status <ID>* to track a request\n\n"
        f"Returns and exchanges are accepted within {settings.RETURN_WINDOW_DAYS} days of delivery."
    )
