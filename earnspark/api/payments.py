"""
STK push endpoints.

OPTIONS /initiate-payment            CORS preflight.
POST    /initiate-payment            Send an STK push and record the intent.
OPTIONS /payment-status[/{ref}]      CORS preflight.
GET     /payment-status?reference=   Reconcile and report a payment's status.
GET     /payment-status/{reference}  Same, path form used by older clients.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from earnspark.api.deps import get_gateway, get_settings, get_store
from earnspark.api.errors import ApiError
from earnspark.config import Settings
from earnspark.engine.initiation import PaymentRequestError, ProviderRejectedError, initiate_payment
from earnspark.engine.reconcile import Reconciliation, reconcile_payment
from earnspark.engine.retry import GatewayError
from earnspark.models.enums import PaymentStatus
from earnspark.providers.base import PaymentGateway
from earnspark.store import PaymentStore

logger = logging.getLogger("earnspark.api.payments")

router = APIRouter(tags=["payments"])

CORS_ALLOW_HEADERS = "Content-Type, Authorization"


class InitiatePaymentRequest(BaseModel):
    phoneNumber: Optional[str] = None
    amount: Optional[float] = None
    description: Optional[str] = None

    model_config = {"coerce_numbers_to_str": True}


class CheckoutIds(BaseModel):
    checkoutRequestId: str
    externalReference: str
    transactionRequestId: str


class InitiatePaymentResponse(BaseModel):
    success: bool = True
    message: str
    data: CheckoutIds


def _preflight(methods: str) -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Allow-Methods": methods,
        },
    )


def _require_gateway(settings: Settings, gateway: Optional[PaymentGateway]) -> PaymentGateway:
    missing = settings.missing_provider_config()
    if missing or gateway is None:
        raise ApiError(500, f"Server is missing {missing or 'payment provider'} configuration")
    return gateway


@router.options("/initiate-payment", include_in_schema=False)
async def initiate_payment_preflight():
    return _preflight("POST, OPTIONS")


@router.post("/initiate-payment", response_model=InitiatePaymentResponse)
async def create_payment(
    body: Optional[InitiatePaymentRequest] = None,
    settings: Settings = Depends(get_settings),
    gateway: Optional[PaymentGateway] = Depends(get_gateway),
    store: Optional[PaymentStore] = Depends(get_store),
):
    """
    Send an STK push to the customer's phone.

    All three ids in the response carry the provider's checkout id; clients
    poll the status endpoint with any of them.
    """
    body = body or InitiatePaymentRequest()
    if not body.phoneNumber:
        raise ApiError(400, "Phone number is required")

    gateway = _require_gateway(settings, gateway)
    missing_db = settings.missing_database_config()
    if missing_db or store is None:
        raise ApiError(500, f"Server is missing {missing_db or 'database'} configuration")

    try:
        payment = await initiate_payment(
            settings,
            gateway,
            store,
            phone_number=body.phoneNumber,
            amount=body.amount,
            description=body.description,
        )
    except PaymentRequestError as e:
        raise ApiError(400, e.message) from e
    except ProviderRejectedError as e:
        raise ApiError(400, e.message, error=e.payload) from e
    except GatewayError as e:
        logger.error("Payment initiation via %s failed: %s", gateway.name, e)
        raise ApiError(502, "Invalid response from payment service", error=str(e)) from e

    tx = payment.transaction_id
    return InitiatePaymentResponse(
        message="Payment initiated successfully",
        data=CheckoutIds(checkoutRequestId=tx, externalReference=tx, transactionRequestId=tx),
    )


@router.options("/payment-status", include_in_schema=False)
@router.options("/payment-status/{reference}", include_in_schema=False)
async def payment_status_preflight():
    return _preflight("GET, OPTIONS")


@router.get("/payment-status")
async def payment_status(
    reference: Optional[str] = Query(None, description="Our reference or the provider's checkout id"),
    debug: Optional[str] = Query(None, description="Set to 1 to include provider diagnostics while pending"),
    settings: Settings = Depends(get_settings),
    gateway: Optional[PaymentGateway] = Depends(get_gateway),
    store: Optional[PaymentStore] = Depends(get_store),
):
    return await _status_response(reference, debug, settings, gateway, store)


@router.get("/payment-status/{reference}")
async def payment_status_by_path(
    reference: str,
    debug: Optional[str] = Query(None),
    settings: Settings = Depends(get_settings),
    gateway: Optional[PaymentGateway] = Depends(get_gateway),
    store: Optional[PaymentStore] = Depends(get_store),
):
    return await _status_response(reference, debug, settings, gateway, store)


async def _status_response(
    reference: Optional[str],
    debug: Optional[str],
    settings: Settings,
    gateway: Optional[PaymentGateway],
    store: Optional[PaymentStore],
) -> dict[str, Any]:
    reference = (reference or "").strip()
    if not reference:
        raise ApiError(400, "Payment reference is required")

    gateway = _require_gateway(settings, gateway)
    missing_db = settings.missing_database_config()
    if missing_db:
        raise ApiError(500, f"Server is missing {missing_db} configuration")

    reconciliation = await reconcile_payment(reference, gateway, store)
    include_diagnostics = debug == "1" and settings.debug_diagnostics_enabled
    return {"success": True, "payment": payment_view(reconciliation, include_diagnostics)}


def payment_view(rec: Reconciliation, include_diagnostics: bool = False) -> dict[str, Any]:
    """Render a reconciliation in the shape the web client polls for."""
    intent = rec.intent
    if intent is None or intent.updated_at is None or (rec.status.is_terminal and not rec.from_store):
        timestamp = datetime.now(timezone.utc)
    else:
        timestamp = intent.updated_at

    payment: dict[str, Any] = {
        "status": rec.status.client_label,
        "amount": intent.amount if intent is not None else None,
        "phoneNumber": intent.phone_number if intent is not None else None,
        "timestamp": timestamp.isoformat(),
    }
    for key, value in (
        ("mpesaReceiptNumber", rec.receipt_number),
        ("resultDesc", rec.result_desc),
        ("resultCode", rec.result_code),
    ):
        if value is not None:
            payment[key] = value

    if rec.status is PaymentStatus.PENDING:
        payment["message"] = "Payment is still being processed"
        if include_diagnostics:
            query = rec.provider_query
            payment["providerHttpStatus"] = query.http_status if query else None
            payment["providerData"] = query.payload if query else None
            payment["providerRawText"] = query.raw_body if query else None

    return payment
