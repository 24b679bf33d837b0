"""
Payment trace endpoint for operators.

GET /payments/{reference}/trace  Intent details plus its full audit trail.

Requires the X-Admin-Token header to match ADMIN_TOKEN; with no token
configured the endpoint is closed.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from earnspark.api.deps import get_settings, get_store
from earnspark.api.errors import ApiError
from earnspark.audit.logger import parse_details
from earnspark.config import Settings
from earnspark.models.payment import PaymentIntent
from earnspark.store import PaymentStore, StoreError

router = APIRouter(prefix="/payments", tags=["payments"])


class IntentDetail(BaseModel):
    id: str
    reference: str
    provider: Optional[str]
    provider_transaction_id: Optional[str]
    status: str
    amount: float
    phone_number: str
    description: Optional[str]
    mpesa_receipt_number: Optional[str]
    result_code: Optional[str]
    result_desc: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


class PaymentTrace(BaseModel):
    intent: IntentDetail
    audit_trail: list[AuditEntry]


def _intent_to_detail(p: PaymentIntent) -> IntentDetail:
    return IntentDetail(
        id=p.id,
        reference=p.reference,
        provider=p.provider,
        provider_transaction_id=p.provider_transaction_id,
        status=p.status,
        amount=p.amount,
        phone_number=p.phone_number,
        description=p.description,
        mpesa_receipt_number=p.mpesa_receipt_number,
        result_code=p.result_code,
        result_desc=p.result_desc,
        created_at=p.created_at.isoformat() if p.created_at else None,
        updated_at=p.updated_at.isoformat() if p.updated_at else None,
    )


def require_admin(
    x_admin_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.admin_token
    if not expected or not x_admin_token or not hmac.compare_digest(expected, x_admin_token):
        raise ApiError(403, "Forbidden")


@router.get("/{reference}/trace", response_model=PaymentTrace, dependencies=[Depends(require_admin)])
async def get_payment_trace(reference: str, store: Optional[PaymentStore] = Depends(get_store)):
    """
    Full audit trail for a payment.

    Accepts our reference or the provider's checkout id. Entries are ordered
    chronologically.
    """
    if store is None:
        raise ApiError(500, "Server is missing database configuration")

    try:
        intent = await store.find_intent(reference)
        if intent is None:
            raise ApiError(404, f"Payment not found: {reference}")
        events = await store.audit_trail(intent.id)
    except StoreError as e:
        raise ApiError(503, "Payment records are temporarily unavailable") from e

    return PaymentTrace(
        intent=_intent_to_detail(intent),
        audit_trail=[
            AuditEntry(
                id=ev.id,
                action=ev.action,
                details=parse_details(ev.details),
                timestamp=ev.timestamp.isoformat() if ev.timestamp else None,
            )
            for ev in events
        ],
    )
