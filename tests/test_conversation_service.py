# tests/test_conversation_service.py
"""Inbound WhatsApp message parsing and the help-text fallback."""

from unittest.mock import AsyncMock

import pytest

from app.domain.services.conversation_service import extract_text, handle_incoming_message
from tests.conftest import WA_ID


@pytest.mark.parametrize(
    "message, expected",
    [
        ({"type": "text", "text": {"body": "  return  "}}, "return"),
        ({"text": {"body": "exchange"}}, "exchange"),
        ({"type": "interactive", "interactive": {"button_reply": {"id": "1", "title": "Yes"}}}, "1"),
        ({"type": "interactive", "interactive": {"list_reply": {"title": "Wrong size"}}}, "Wrong size"),
        ({"type": "button", "button": {"text": "Cancel"}}, "Cancel"),
        ({"type": "image", "image": {"id": "media-1"}}, None),
    ],
)
def test_extract_text(message, expected):
    assert extract_text(message) == expected


def test_handled_message_sends_nothing_extra(event_loop, messenger):
    flow = AsyncMock()
    flow.handle.return_value = True
    message = {"from": WA_ID, "type": "text", "text": {"body": "return"}}

    event_loop.run_until_complete(handle_incoming_message(flow, messenger, message))
    flow.handle.assert_awaited_once_with(WA_ID, "return")
    assert messenger.sent == []


def test_unhandled_message_gets_help(event_loop, messenger):
    flow = AsyncMock()
    flow.handle.return_value = False
    message = {"from": WA_ID, "type": "text", "text": {"body": "hi"}}

    event_loop.run_until_complete(handle_incoming_message(flow, messenger, message))
    assert "Reply *return*" in messenger.last
    assert "7 days of delivery" in messenger.last


def test_media_message_is_ignored(event_loop, messenger):
    flow = AsyncMock()
    message = {"from": WA_ID, "type": "image", "image": {"id": "media-1"}}

    event_loop.run_until_complete(handle_incoming_message(flow, messenger, message))
    flow.handle.assert_not_awaited()
    assert messenger.sent == []
