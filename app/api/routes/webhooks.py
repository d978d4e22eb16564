# app/api/routes/webhooks.py
"""
Provider callbacks: Razorpay payment events, Shiprocket return status
updates and the page Razorpay redirects the customer to after paying.
"""

import hmac
import json
import logging
from html import escape

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse

from app.api.deps import get_notifier, get_payments
from app.core.config import settings
from app.domain.ports import PaymentProvider
from app.domain.services.status_notifier import ShippingStatusUpdate, StatusNotifier
from app.infrastructure.external.razorpay_client import payment_event_from_webhook

logger = logging.getLogger("provider_webhooks")

router = APIRouter()


def _json_body(raw: bytes) -> dict:
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return body


@router.post("/webhooks/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(None, alias="X-Razorpay-Signature"),
    payments: PaymentProvider = Depends(get_payments),
    notifier: StatusNotifier = Depends(get_notifier),
):
    raw = await request.body()
    if not payments.verify_webhook_signature(raw, x_razorpay_signature):
        logger.warning("Invalid Razorpay webhook signature")
        raise HTTPException(status_code=400, detail="Invalid signature")

    body = _json_body(raw)
    event = payment_event_from_webhook(body)
    logger.info("Razorpay webhook event %s (order=%s)", event.event, event.order_id)

    try:
        result = await notifier.handle_payment_event(event)
    except Exception:
        logger.exception("Razorpay webhook processing failed")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    return {"success": True, "result": result.value}


@router.post("/webhooks/shiprocket/return")
async def shiprocket_return_webhook(
    request: Request,
    x_api_key: str = Header(None, alias="x-api-key"),
    notifier: StatusNotifier = Depends(get_notifier),
):
    expected = settings.SHIPROCKET_WEBHOOK_TOKEN
    if expected and not hmac.compare_digest(x_api_key or "", expected):
        logger.warning("Shiprocket webhook with bad token")
        raise HTTPException(status_code=401, detail="Invalid token")

    body = _json_body(await request.body())
    reference = body.get("order_id")
    status = body.get("status") or body.get("current_status")
    if reference is None or not status:
        logger.warning("Shiprocket webhook without order_id/status: %s", body)
        raise HTTPException(status_code=400, detail="order_id and status are required")

    update = ShippingStatusUpdate(reference=str(reference), status=str(status), awb=body.get("awb") or None)
    logger.info("Shiprocket return webhook %s -> %s", update.reference, update.status)

    try:
        results = await notifier.handle_shipping_update(update)
    except Exception:
        logger.exception("Shiprocket webhook processing failed")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    return {"success": True, "results": [r.value for r in results]}


_PAGE = """<html>
    <head>
        <title>{title}</title>
        <style>
            body {{ font-family: Arial; text-align: center; padding: 50px; }}
            .{cls} {{ color: {color}; font-size: 24px; margin: 20px; }}
            .info {{ color: #666; margin: 10px; }}
        </style>
    </head>
    <body>
        <h1 class="{cls}">{heading}</h1>
        {lines}
    </body>
</html>"""


@router.get("/payment/callback", response_class=HTMLResponse)
async def payment_callback(razorpay_payment_id: str = None, razorpay_payment_link_id: str = None):
    logger.info("Payment callback link=%s payment=%s", razorpay_payment_link_id, razorpay_payment_id)
    if razorpay_payment_id:
        lines = [
            "Your exchange request is being processed.",
            "You'll receive updates on WhatsApp.",
            f"Payment ID: {escape(razorpay_payment_id)}",
        ]
        title, heading, cls, color = "Payment Successful", "✅ Payment Successful!", "success", "#28a745"
    else:
        lines = ["Your payment could not be processed.", "Please try again or contact support."]
        title, heading, cls, color = "Payment Failed", "❌ Payment Failed", "error", "#dc3545"

    return _PAGE.format(
        title=title,
        heading=heading,
        cls=cls,
        color=color,
        lines="\n        ".join(f'<p class="info">{line}</p>' for line in lines),
    )
