import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.api.deps import get_flow, get_messenger
from app.core.config import settings
from app.domain.ports import Messenger
from app.domain.services.conversation_service import handle_incoming_message
from app.domain.services.return_exchange_flow import ReturnExchangeFlow

logger = logging.getLogger("whatsapp_webhook")

router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse)
async def verify(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
):
    if hub_mode == "subscribe" and settings.WHATSAPP_VERIFY_TOKEN and hub_verify_token == settings.WHATSAPP_VERIFY_TOKEN:
        logger.info("WhatsApp webhook verified")
        return hub_challenge or ""
    logger.warning("WhatsApp webhook verification failed (mode=%s)", hub_mode)
    raise HTTPException(status_code=403, detail="Verification failed")


@router.post("/webhook")
async def webhook(
    request: Request,
    flow: ReturnExchangeFlow = Depends(get_flow),
    messenger: Messenger = Depends(get_messenger),
):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    try:
        for entry in body.get("entry") or []:
            for change in entry.get("changes") or []:
                value = change.get("value") or {}
                # delivery/read receipts carry "statuses" and no messages
                for message in value.get("messages") or []:
                    await handle_incoming_message(flow, messenger, message)
    except Exception:
        logger.exception("WhatsApp webhook processing failed")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    return {"status": "ok"}
