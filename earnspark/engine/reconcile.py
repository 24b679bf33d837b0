"""
Payment status reconciliation, the server side of client polling.

For a reference (ours or the provider's checkout id):

  1. Look up the local intent; a store failure degrades to provider-only polling
  2. Already terminal: answer from the row, no provider call
  3. Query the provider; a transport failure counts as still pending
  4. Derive the canonical status from the provider's result code
  5. Finalize the local row when terminal; write failures are only logged

The client polls again regardless, so every failure path here answers
"pending" rather than raising.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from earnspark.engine.retry import GatewayError
from earnspark.models.enums import TERMINAL_STATUSES, PaymentStatus
from earnspark.models.payment import PaymentIntent
from earnspark.providers.base import PaymentGateway, ProviderResult, StatusQueryResult
from earnspark.store import PaymentStore, StoreError

logger = logging.getLogger("earnspark.reconcile")


@dataclass
class Reconciliation:
    """Best-known state of a payment after one reconciliation pass."""

    status: PaymentStatus
    intent: Optional[PaymentIntent] = None
    receipt_number: Optional[str] = None
    result_code: Optional[str] = None
    result_desc: Optional[str] = None
    provider_query: Optional[StatusQueryResult] = None
    from_store: bool = False


def derive_status(result: Optional[ProviderResult]) -> PaymentStatus:
    """
    Map a provider result onto the canonical status.

    The result code is authoritative: "0" is success, any other code is a
    failure. Without a code the payment stays pending, even if the provider's
    top-level status claims success.
    """
    if result is None or result.result_code is None:
        return PaymentStatus.PENDING
    if result.result_code.strip() == "0":
        return PaymentStatus.SUCCESS
    return PaymentStatus.FAILED


async def reconcile_payment(
    reference: str,
    gateway: PaymentGateway,
    store: Optional[PaymentStore],
) -> Reconciliation:
    intent = await _lookup(store, reference)

    if intent is not None and intent.status in TERMINAL_STATUSES:
        logger.debug("Payment %s already finalized as %s", reference, intent.status)
        return Reconciliation(
            status=PaymentStatus(intent.status),
            intent=intent,
            receipt_number=intent.mpesa_receipt_number,
            result_code=intent.result_code,
            result_desc=intent.result_desc,
            from_store=True,
        )

    transaction_id = (intent.provider_transaction_id if intent is not None else None) or reference

    try:
        query = await gateway.query_status(transaction_id)
    except GatewayError as e:
        logger.warning("%s status query for %s failed, reporting pending: %s", gateway.name, transaction_id, e)
        return Reconciliation(status=PaymentStatus.PENDING, intent=intent)

    result = query.result
    if result is None:
        logger.warning(
            "%s status for %s was inconclusive (HTTP %s): %s",
            gateway.name,
            transaction_id,
            query.http_status,
            query.raw_body[:200],
        )
    elif result.result_code is None and result.provider_status == "success":
        logger.info("%s reports success for %s without a result code, keeping pending", gateway.name, transaction_id)

    status = derive_status(result)
    reconciliation = Reconciliation(
        status=status,
        intent=intent,
        receipt_number=result.receipt_number if result else None,
        result_code=result.result_code if result else None,
        result_desc=result.result_desc if result else None,
        provider_query=query,
    )

    if status.is_terminal:
        logger.info("Payment %s finalized by %s as %s (code=%s)", reference, gateway.name, status.value, reconciliation.result_code)
        if intent is not None and store is not None:
            await _persist(store, intent, reconciliation)

    return reconciliation


async def _lookup(store: Optional[PaymentStore], reference: str) -> Optional[PaymentIntent]:
    if store is None:
        return None
    try:
        return await store.find_intent(reference)
    except StoreError as e:
        logger.error("Intent lookup failed, continuing with provider polling: %s", e)
        return None


async def _persist(store: PaymentStore, intent: PaymentIntent, reconciliation: Reconciliation) -> None:
    try:
        transitioned = await store.finalize_intent(
            intent.id,
            reconciliation.status,
            receipt_number=reconciliation.receipt_number,
            result_code=reconciliation.result_code,
            result_desc=reconciliation.result_desc,
            reference=intent.reference,
        )
    except StoreError as e:
        logger.error("Could not persist final status for %s: %s", intent.reference, e)
        return
    if not transitioned:
        logger.debug("Intent %s was already finalized by a concurrent poll", intent.reference)
