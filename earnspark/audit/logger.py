"""
Immutable audit trail for payment intents.

Every lifecycle change gets an append-only entry with:
  - Intent ID and reference (which payment attempt)
  - Action (what happened)
  - Details (provider, amounts, result codes)
  - Timestamp (UTC)

Entries are never modified or deleted.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from earnspark.models.enums import AuditAction
from earnspark.models.payment import PaymentEvent

logger = logging.getLogger("earnspark.audit")


def log_event(
    session: AsyncSession,
    action: AuditAction,
    intent_id: Optional[str] = None,
    reference: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> PaymentEvent:
    """
    Stage an audit entry on the session; the caller's commit persists it.

    Args:
        session: Database session.
        action: What happened.
        intent_id: The payment intent this event relates to.
        reference: The intent's reference, kept even if the intent row is absent.
        details: Arbitrary context (serialized to JSON).
    """
    entry = PaymentEvent(
        intent_id=intent_id,
        reference=reference,
        action=action.value,
        details=json.dumps(details, default=str) if details else None,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | intent=%s ref=%s action=%s | %s",
        intent_id or "-",
        reference or "-",
        action.value,
        json.dumps(details, default=str)[:200] if details else "",
    )
    return entry


def parse_details(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {"raw": raw}
