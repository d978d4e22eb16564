import logging
from typing import Any, Dict, Optional

from app.domain.ports import Messenger
from app.domain.services import return_messages as msg
from app.domain.services.return_exchange_flow import ReturnExchangeFlow

logger = logging.getLogger("conversation_service")


def extract_text(message: Dict[str, Any]) -> Optional[str]:
    """Text of an inbound message; button/list replies use their title."""
    kind = message.get("type", "text")
    if kind == "text":
        return (message.get("text") or {}).get("body", "").strip()
    if kind == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        return (reply.get("id") or reply.get("title") or "").strip()
    if kind == "button":
        return (message.get("button") or {}).get("text", "").strip()
    return None


async def handle_incoming_message(
    flow: ReturnExchangeFlow,
    messenger: Messenger,
    message: Dict[str, Any],
) -> None:
    number = message["from"]
    text = extract_text(message)
    if not text:
        logger.info("Ignoring %s message from %s", message.get("type"), number)
        return

    if await flow.handle(number, text):
        return

    result = await messenger.send_text(number, msg.help_text())
    if not result.ok:
        logger.warning("Help text to %s not delivered: %s", number, result.error)
