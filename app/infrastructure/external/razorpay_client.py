# app/infrastructure/external/razorpay_client.py
"""
Razorpay REST client: payment links for exchange balances, refunds and
webhook signature checks.

Amounts cross the wire in paise.  Without RAZORPAY_KEY_ID/SECRET every
payment call fails with "Razorpay not configured" instead of raising.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.domain.ports import CustomerContact, PaymentLink, ProviderResult, RefundReceipt
from app.domain.services.status_notifier import PaymentEvent

_TIMEOUT = 20
NOT_CONFIGURED = "Razorpay not configured"


class RazorpayError(Exception):
    def __init__(self, message: str, status_code: int = 0, response: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


def to_paise(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_paise(paise: Any) -> Decimal:
    return (Decimal(int(paise or 0)) / 100).quantize(Decimal("0.01"))


class RazorpayClient:
    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base = settings.RAZORPAY_BASE_URL.rstrip("/")
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
        self._transport = transport
        if not self.enabled:
            logger.warning("Razorpay not configured - payment features disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def _request(self, method: str, path: str, json_body: dict | None = None) -> Dict[str, Any]:
        url = f"{self.base}{path}"
        logger.info("Razorpay {} {}", method, path)
        try:
            async with httpx.AsyncClient(
                timeout=_TIMEOUT,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                r = await client.request(method, url, json=json_body)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as exc:
            try:
                body = exc.response.json()
            except ValueError:
                body = {}
            error = body.get("error") or {}
            message = error.get("description") or f"Razorpay API error: {exc.response.status_code}"
            logger.error("Razorpay HTTP error: {} {} -> {} {}", method, path, exc.response.status_code, body)
            raise RazorpayError(message, status_code=exc.response.status_code, response=body) from exc
        except httpx.HTTPError as exc:
            logger.error("Razorpay transport error: {} {}: {}", method, path, exc)
            raise RazorpayError(f"Razorpay request failed: {exc}") from exc
        except ValueError as exc:
            raise RazorpayError("Razorpay returned a non-JSON body") from exc

    async def create_payment_link(
        self, amount: Decimal, order_id: str, customer: CustomerContact
    ) -> ProviderResult[PaymentLink]:
        if not self.enabled:
            return ProviderResult.failure(NOT_CONFIGURED)

        expire_by = datetime.now(timezone.utc) + timedelta(hours=settings.PAYMENT_LINK_EXPIRY_HOURS)
        payload = {
            "amount": to_paise(amount),
            "currency": "INR",
            "description": f"Exchange balance for Order {order_id}",
            "customer": {
                "name": customer.name or "Customer",
                "contact": customer.phone,
                "email": customer.email or f"{customer.phone}@customer.com",
            },
            "notify": {"sms": True, "email": False},
            "reminder_enable": True,
            "notes": {"order_id": order_id, "type": "exchange_balance"},
            "callback_url": f"{settings.APP_URL.rstrip('/')}/payment/callback",
            "callback_method": "get",
            "expire_by": int(expire_by.timestamp()),
        }
        try:
            data = await self._request("POST", "/payment_links", payload)
        except RazorpayError as exc:
            return ProviderResult.failure(str(exc))

        expires_at = datetime.fromtimestamp(int(data.get("expire_by") or payload["expire_by"]), tz=timezone.utc)
        logger.info("Payment link {} created for order {} ({} paise)", data.get("id"), order_id, payload["amount"])
        return ProviderResult.success(
            PaymentLink(link_ref=data["id"], url=data["short_url"], expires_at=expires_at)
        )

    async def refund(
        self, payment_ref: str, amount: Decimal, notes: Optional[dict] = None
    ) -> ProviderResult[RefundReceipt]:
        if not self.enabled:
            return ProviderResult.failure(NOT_CONFIGURED)
        try:
            data = await self._request(
                "POST",
                f"/payments/{payment_ref}/refund",
                {"amount": to_paise(amount), "speed": "normal", "notes": notes or {}},
            )
        except RazorpayError as exc:
            return ProviderResult.failure(str(exc))

        return ProviderResult.success(
            RefundReceipt(refund_id=data["id"], amount=from_paise(data.get("amount")), status=data.get("status", ""))
        )

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """HMAC-SHA256 of the raw request body, hex encoded."""
        if not self.webhook_secret:
            logger.warning("RAZORPAY_WEBHOOK_SECRET not set; rejecting webhook")
            return False
        if not signature:
            return False
        expected = hmac.new(self.webhook_secret.encode(), raw_body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)


def payment_event_from_webhook(body: Dict[str, Any]) -> PaymentEvent:
    """Translate a Razorpay ``payment.*`` webhook body into a ``PaymentEvent``."""
    entity = ((body.get("payload") or {}).get("payment") or {}).get("entity") or {}
    notes = entity.get("notes") or {}
    if isinstance(notes, list):
        notes = {}
    amount = entity.get("amount")
    return PaymentEvent(
        event=body.get("event", ""),
        order_id=notes.get("order_id"),
        payment_ref=entity.get("id"),
        amount=from_paise(amount) if amount is not None else None,
        error_text=entity.get("error_description"),
    )
