"""
Payment initiation: validate, reference, push, record.

  1. Validate phone and amount
  2. Generate a reference before any provider call
  3. Ask the gateway for an STK push (rate limits retried with backoff)
  4. Record a pending intent; a failed write is logged, never fatal

The provider is the source of truth for whether money moved, so losing the
local row must not block a customer whose push was already accepted. Status
checks fall back to querying the provider directly when the row is missing.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional

from earnspark.config import Settings
from earnspark.engine.retry import with_retry
from earnspark.engine.validation import check_payment_request
from earnspark.providers.base import PaymentGateway
from earnspark.store import NewIntent, PaymentStore, StoreError

logger = logging.getLogger("earnspark.initiation")


class PaymentRequestError(Exception):
    """The caller's request was invalid; nothing was sent to the provider."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class ProviderRejectedError(Exception):
    """The provider declined the push or did not return a transaction id."""

    def __init__(self, message: str, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload


@dataclass
class InitiatedPayment:
    reference: str
    transaction_id: str
    phone_number: str
    amount: float
    recorded: bool


def generate_reference(prefix: str, now_ms: Optional[int] = None) -> str:
    """`{prefix}-{epoch millis}-{0..999}`; collisions are survivable, not fatal."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}-{now_ms}-{random.randint(0, 999)}"


async def initiate_payment(
    settings: Settings,
    gateway: PaymentGateway,
    store: PaymentStore,
    phone_number: Optional[str],
    amount: Optional[float] = None,
    description: Optional[str] = None,
) -> InitiatedPayment:
    """
    Send an STK push and record the resulting intent.

    Raises:
        PaymentRequestError: Missing or invalid phone number or amount.
        ProviderRejectedError: The provider declined the request.
        GatewayError: The provider could not be reached or understood.
    """
    if amount is None:
        amount = settings.default_amount
    description = description or settings.default_description

    check = check_payment_request(phone_number, amount, settings.country_code)
    if not check.valid:
        raise PaymentRequestError(check.message, reason=check.reject_reason.value if check.reject_reason else None)

    reference = generate_reference(settings.reference_prefix)
    logger.info("Initiating %s push %s for %s (KES %.2f)", gateway.name, reference, _mask(check.phone_number), amount)

    result = await with_retry(
        gateway.initiate,
        check.phone_number,
        amount,
        reference,
        description,
        max_retries=settings.provider_max_retries,
    )

    if not result.accepted or not result.transaction_id:
        logger.warning("%s rejected push %s: %s", gateway.name, reference, result.message or result.payload)
        raise ProviderRejectedError(result.message or "Payment initiation failed", payload=result.payload)

    recorded = True
    try:
        await store.create_intent(NewIntent(
            reference=reference,
            provider=gateway.name,
            provider_transaction_id=result.transaction_id,
            amount=amount,
            phone_number=check.phone_number,
            description=description,
        ))
    except StoreError as e:
        recorded = False
        logger.error("Push %s accepted as %s but not recorded: %s", reference, result.transaction_id, e)

    return InitiatedPayment(
        reference=reference,
        transaction_id=result.transaction_id,
        phone_number=check.phone_number,
        amount=amount,
        recorded=recorded,
    )


def _mask(phone_number: str) -> str:
    return phone_number[:6] + "***" + phone_number[-2:] if len(phone_number) > 8 else "***"
