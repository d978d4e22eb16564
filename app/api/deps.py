# app/api/deps.py
"""
Process-wide collaborators for the route modules.

Each getter builds its object once, from settings, and hands the same
instance to every request.  Tests swap them through
``app.dependency_overrides``.
"""

import logging
from typing import Optional

from app.core.config import settings
from app.domain.ports import Messenger, PaymentProvider, RecordStore, SessionStore, ShippingProvider
from app.domain.services.catalog import VariantCatalog
from app.domain.services.return_exchange_flow import ReturnExchangeFlow
from app.domain.services.status_notifier import StatusNotifier
from app.infrastructure.cache.redis_client import get_redis_client
from app.infrastructure.cache.session_cache import InMemorySessionStore, RedisSessionStore
from app.infrastructure.db.repositories.memory_store import InMemoryRecordStore
from app.infrastructure.db.repositories.returns_repository import SqlRecordStore
from app.infrastructure.external.razorpay_client import RazorpayClient
from app.infrastructure.external.shiprocket_client import ShiprocketClient
from app.infrastructure.external.shiprocket_sandbox import SandboxShippingClient
from app.infrastructure.external.whatsapp_client import WhatsAppClient

logger = logging.getLogger("api.deps")

_sessions: Optional[SessionStore] = None
_records: Optional[RecordStore] = None
_messenger: Optional[Messenger] = None
_shipping: Optional[ShippingProvider] = None
_payments: Optional[RazorpayClient] = None
_flow: Optional[ReturnExchangeFlow] = None
_notifier: Optional[StatusNotifier] = None


def get_session_store() -> SessionStore:
    global _sessions
    if _sessions is None:
        if settings.SESSION_BACKEND == "redis":
            _sessions = RedisSessionStore(get_redis_client())
        else:
            _sessions = InMemorySessionStore()
        logger.info("Session backend: %s", type(_sessions).__name__)
    return _sessions


def get_record_store() -> RecordStore:
    global _records
    if _records is None:
        _records = InMemoryRecordStore() if settings.RECORD_STORE == "memory" else SqlRecordStore()
        logger.info("Record store: %s", type(_records).__name__)
    return _records


def get_messenger() -> Messenger:
    global _messenger
    if _messenger is None:
        _messenger = WhatsAppClient()
    return _messenger


def get_shipping() -> ShippingProvider:
    global _shipping
    if _shipping is None:
        _shipping = SandboxShippingClient() if settings.SHIPPING_BACKEND == "sandbox" else ShiprocketClient()
        logger.info("Shipping backend: %s", type(_shipping).__name__)
    return _shipping


def get_payments() -> PaymentProvider:
    global _payments
    if _payments is None:
        _payments = RazorpayClient()
    return _payments


def get_flow() -> ReturnExchangeFlow:
    global _flow
    if _flow is None:
        _flow = ReturnExchangeFlow(
            sessions=get_session_store(),
            records=get_record_store(),
            shipping=get_shipping(),
            payments=get_payments(),
            messenger=get_messenger(),
            catalog=VariantCatalog(settings.CATALOG_PRICES),
        )
    return _flow


def get_notifier() -> StatusNotifier:
    global _notifier
    if _notifier is None:
        _notifier = StatusNotifier(
            records=get_record_store(),
            shipping=get_shipping(),
            messenger=get_messenger(),
        )
    return _notifier
