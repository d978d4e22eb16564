# app/infrastructure/external/whatsapp_client.py

import re
from typing import Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.domain.ports import DeliveryReceipt, ProviderResult

WA_BASE = "https://graph.facebook.com"


def clean_phone(phone: str) -> str:
    """Cloud API wants bare digits with country code: '+91 99999-99999' -> '919999999999'."""
    return re.sub(r"\D", "", phone or "")


class WhatsAppClient:
    """WhatsApp Cloud API sender. Failures are logged and returned, never retried."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        api_version: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.access_token = access_token or settings.WHATSAPP_ACCESS_TOKEN
        self.phone_number_id = phone_number_id or settings.WHATSAPP_PHONE_NUMBER_ID
        self.api_version = api_version or settings.WHATSAPP_API_VERSION
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{WA_BASE}/{self.api_version}/{self.phone_number_id}/messages"

    async def send_text(self, phone: str, text: str) -> ProviderResult[DeliveryReceipt]:
        to = clean_phone(phone)
        if not to:
            return ProviderResult.failure("Invalid phone number")
        if not self.access_token or not self.phone_number_id:
            logger.warning("WhatsApp not configured; dropping message to {}", to)
            return ProviderResult.failure("WhatsApp not configured")

        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        logger.info("WA HTTP → Sending message to {}: {!r}", to, text[:80])

        try:
            async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("WA HTTP transport error for {}: {}", to, exc)
            return ProviderResult.failure(f"WhatsApp request failed: {exc}")

        if resp.status_code >= 400:
            logger.error("WA HTTP error {}: {}", resp.status_code, resp.text)
            return ProviderResult.failure(f"WhatsApp API error {resp.status_code}")

        try:
            messages = resp.json().get("messages") or [{}]
        except ValueError:
            messages = [{}]
        logger.success("WA HTTP → Message sent successfully to {}", to)
        return ProviderResult.success(DeliveryReceipt(message_id=messages[0].get("id")))
