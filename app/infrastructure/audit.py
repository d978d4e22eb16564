# app/infrastructure/audit.py
"""
Audit logger for return / exchange status changes.

Every status change that reaches a record is logged with its source
(shipping webhook, payment webhook, dialogue).  Changes that are refused
by the transition table are logged as UNHANDLED_TRANSITION at warning
level so operators can alert on them; they are not applied.
"""

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("audit")


def log_status_transition(
    kind: str,
    record_id: str,
    *,
    from_status: str,
    to_status: str,
    source: str,
    details: dict[str, Any] | None = None,
) -> None:
    """Log an applied status change."""
    logger.info(
        "STATUS_TRANSITION kind=%s id=%s from=%s to=%s source=%s time=%s details=%s",
        kind,
        record_id,
        from_status,
        to_status,
        source,
        datetime.now(timezone.utc).isoformat(),
        details or {},
    )


def log_unhandled_transition(
    kind: str,
    record_id: str,
    *,
    from_status: str,
    to_status: str,
    source: str,
    verdict: str,
) -> None:
    """Log a status change that was refused (unknown status or illegal move)."""
    logger.warning(
        "UNHANDLED_TRANSITION kind=%s id=%s from=%s to=%s source=%s verdict=%s time=%s",
        kind,
        record_id,
        from_status,
        to_status,
        source,
        verdict,
        datetime.now(timezone.utc).isoformat(),
    )
