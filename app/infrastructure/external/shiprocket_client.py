# app/infrastructure/external/shiprocket_client.py
"""
Shiprocket API client for reverse pickups.

Authentication: either a pre-issued token (SHIPROCKET_TOKEN, valid ~10 days)
or an email/password login whose token is refreshed after 9 days.

Endpoints used:
  POST /auth/login
  POST /orders/create/return        -> return order + shipment ids
  POST /courier/generate/pickup     -> book the courier for a shipment
  GET  /orders/show/{id}            -> shipment id when not cached
  GET  /courier/track/awb/{awb}     -> tracking timeline
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from app.core.config import settings
from app.domain.models.returns import LineItem, Order
from app.domain.ports import PickupSlot, ProviderResult, ShippingReturn
from app.domain.services.return_policy import items_total

_TIMEOUT = 30
TOKEN_TTL_SECONDS = 9 * 24 * 60 * 60
DIRECT_TOKEN_TTL_SECONDS = 10 * 24 * 60 * 60


class ShiprocketError(Exception):
    """Raised when the Shiprocket API returns an error."""

    def __init__(self, message: str, status_code: int = 0, response: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


class ShiprocketClient:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base = settings.SHIPROCKET_BASE_URL.rstrip("/")
        self.direct_token = settings.SHIPROCKET_TOKEN
        self.email = settings.SHIPROCKET_EMAIL
        self.password = settings.SHIPROCKET_PASSWORD
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expiry = 0.0
        # return order id -> shipment id, filled by create_return
        self._shipments: Dict[str, str] = {}

    # ----------------------------------------------------------------
    # Auth & transport
    # ----------------------------------------------------------------

    async def _authenticate(self) -> str:
        if self.direct_token:
            if self._token is None:
                self._token = self.direct_token
                self._token_expiry = time.time() + DIRECT_TOKEN_TTL_SECONDS
                logger.info("Using direct Shiprocket token")
            elif time.time() >= self._token_expiry:
                raise ShiprocketError("Shiprocket token expired; update SHIPROCKET_TOKEN")
            return self._token

        if not self.email or not self.password:
            raise ShiprocketError(
                "Shiprocket credentials not configured (SHIPROCKET_TOKEN or SHIPROCKET_EMAIL + SHIPROCKET_PASSWORD)"
            )

        data = await self._send(
            "POST", "/auth/login", json_body={"email": self.email, "password": self.password}
        )
        token = data.get("token")
        if not token:
            raise ShiprocketError("Shiprocket login returned no token", response=data)
        self._token = token
        self._token_expiry = time.time() + TOKEN_TTL_SECONDS
        logger.info("Shiprocket authentication successful")
        return token

    async def _ensure_token(self) -> str:
        if self._token and time.time() < self._token_expiry:
            return self._token
        return await self._authenticate()

    async def _send(
        self,
        method: str,
        path: str,
        json_body: dict | None = None,
        token: str | None = None,
    ) -> Dict[str, Any]:
        url = f"{self.base}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.info("Shiprocket {} {}", method, path)
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT, transport=self._transport) as client:
                r = await client.request(method, url, headers=headers, json=json_body)
                r.raise_for_status()
                return r.json() if r.text.strip() else {}
        except httpx.HTTPStatusError as exc:
            try:
                body = exc.response.json()
            except ValueError:
                body = {"raw": exc.response.text[:500]}
            logger.error("Shiprocket HTTP error: {} {} -> {} {}", method, path, exc.response.status_code, body)
            message = body.get("message") if isinstance(body, dict) else None
            raise ShiprocketError(
                message or f"Shiprocket API error: {exc.response.status_code}",
                status_code=exc.response.status_code,
                response=body,
            ) from exc
        except httpx.TimeoutException as exc:
            logger.error("Shiprocket timeout: {} {}", method, path)
            raise ShiprocketError("Shiprocket API timeout") from exc
        except httpx.HTTPError as exc:
            logger.error("Shiprocket transport error: {} {}: {}", method, path, exc)
            raise ShiprocketError(f"Shiprocket request failed: {exc}") from exc
        except ValueError as exc:
            raise ShiprocketError("Shiprocket returned a non-JSON body") from exc

    async def _request(self, method: str, path: str, json_body: dict | None = None) -> Dict[str, Any]:
        token = await self._ensure_token()
        return await self._send(method, path, json_body=json_body, token=token)

    # ----------------------------------------------------------------
    # Reverse pickup
    # ----------------------------------------------------------------

    @staticmethod
    def _return_payload(order: Order, items: List[LineItem], reason: str) -> Dict[str, Any]:
        stamp = datetime.now(timezone.utc)
        return {
            "order_id": f"R-{order.order_id}-{int(stamp.timestamp())}",
            "order_date": stamp.strftime("%Y-%m-%d"),
            "channel_order_id": order.shipping_order_ref or order.order_id,
            "pickup_customer_name": order.customer_name or "Customer",
            "pickup_address": order.shipping_address or "",
            "pickup_phone": order.customer_phone or "",
            "pickup_email": order.customer_email or "",
            "order_items": [
                {
                    "name": item.name,
                    "sku": item.sku,
                    "units": item.quantity,
                    "selling_price": str(item.price),
                    "qc_enable": True,
                    "return_reason": reason,
                }
                for item in items
            ],
            "payment_method": "Prepaid",
            "sub_total": str(items_total(items)),
            "length": 10,
            "breadth": 10,
            "height": 10,
            "weight": 0.5,
        }

    async def create_return(
        self, order: Order, items: List[LineItem], reason: str
    ) -> ProviderResult[ShippingReturn]:
        try:
            data = await self._request("POST", "/orders/create/return", self._return_payload(order, items, reason))
        except ShiprocketError as exc:
            return ProviderResult.failure(str(exc))

        return_ref = data.get("order_id")
        if return_ref is None:
            logger.error("Shiprocket return for {} has no order id: {}", order.order_id, data)
            return ProviderResult.failure("Shiprocket did not return an order id")

        return_ref = str(return_ref)
        if data.get("shipment_id") is not None:
            self._shipments[return_ref] = str(data["shipment_id"])
        logger.info("Shiprocket return {} created for order {}", return_ref, order.order_id)
        return ProviderResult.success(ShippingReturn(return_ref=return_ref, awb=data.get("awb_code") or None))

    async def _shipment_id(self, return_ref: str) -> str:
        if return_ref in self._shipments:
            return self._shipments[return_ref]
        data = await self._request("GET", f"/orders/show/{return_ref}")
        shipments = (data.get("data") or {}).get("shipments") or {}
        if isinstance(shipments, list):
            shipments = shipments[0] if shipments else {}
        shipment_id = shipments.get("id")
        if shipment_id is None:
            raise ShiprocketError(f"No shipment found for Shiprocket order {return_ref}")
        self._shipments[return_ref] = str(shipment_id)
        return str(shipment_id)

    async def schedule_pickup(
        self, return_ref: str, address: Optional[str], pickup_date: date
    ) -> ProviderResult[PickupSlot]:
        try:
            shipment_id = await self._shipment_id(return_ref)
            data = await self._request(
                "POST",
                "/courier/generate/pickup",
                {"shipment_id": [shipment_id], "pickup_date": [pickup_date.isoformat()]},
            )
        except ShiprocketError as exc:
            return ProviderResult.failure(str(exc))

        if data.get("pickup_status") not in (1, True, "1"):
            logger.error("Shiprocket pickup for {} not confirmed: {}", return_ref, data)
            return ProviderResult.failure("Shiprocket did not confirm the pickup")

        response = data.get("response") or {}
        scheduled = pickup_date
        raw_date = response.get("pickup_scheduled_date")
        if raw_date:
            try:
                scheduled = datetime.fromisoformat(str(raw_date)).date()
            except ValueError:
                logger.warning("Unparseable pickup date {!r} for {}", raw_date, return_ref)
        return ProviderResult.success(PickupSlot(pickup_date=scheduled, awb=response.get("awb_code") or None))

    async def get_tracking(self, awb: str) -> ProviderResult[List[Dict[str, Any]]]:
        """Tracking timeline for ``awb``, most recent event first."""
        try:
            data = await self._request("GET", f"/courier/track/awb/{awb}")
        except ShiprocketError as exc:
            return ProviderResult.failure(str(exc))

        events = (data.get("tracking_data") or {}).get("shipment_track_activities") or []
        timeline = [
            {
                "date": e.get("date"),
                "location": e.get("location"),
                "activity": e.get("activity"),
                "status": e.get("sr-status-label") or e.get("status"),
            }
            for e in events
        ]
        return ProviderResult.success(timeline)
