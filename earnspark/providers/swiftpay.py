"""
SwiftPay STK push adapter.

SwiftPay fronts Safaricom Daraja. Initiation returns a checkout id whose field
name has changed between SwiftPay releases; status is read through SwiftPay's
verification proxy, which wraps the Daraja result in one of several
containers. Both quirks are resolved here and nowhere else.
"""

import logging
from typing import Any, Optional

import httpx

from earnspark.config import Settings
from earnspark.engine.retry import GatewayResponseError
from earnspark.phone import normalize_phone
from earnspark.providers.base import (
    InitiationResult,
    PaymentGateway,
    ProviderResult,
    StatusQueryResult,
    as_text,
    first_present,
)
from earnspark.providers.http import ProviderHttp

logger = logging.getLogger("earnspark.providers.swiftpay")

TRANSACTION_ID_FIELDS = (
    "checkout_id",
    "checkoutRequestId",
    "CheckoutRequestID",
    "transaction_request_id",
    "data.checkout_id",
    "data.checkoutRequestId",
    "data.CheckoutRequestID",
    "data.transaction_request_id",
)

RESULT_CONTAINERS = ("result", "data.result", "payment", "data.payment")

_TRUTHY = {"true", "200", "success", "ok", "1"}


class SwiftPayGateway(PaymentGateway):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._api_key = settings.swiftpay_api_key or ""
        self._base_url = settings.swiftpay_backend_url.rstrip("/")
        self._initiate_path = settings.swiftpay_initiate_path
        self._verify_path = settings.swiftpay_verify_path
        self._callback_url = settings.callback_url
        self._country_code = settings.country_code
        self._http = ProviderHttp(settings.provider_timeout_s, client=client)

    @property
    def name(self) -> str:
        return "swiftpay"

    async def initiate(
        self,
        phone_number: str,
        amount: float,
        reference: str,
        description: str,
    ) -> InitiationResult:
        body: dict[str, Any] = {
            "phone_number": normalize_phone(phone_number, self._country_code),
            "amount": _amount_text(amount),
            "reference": reference,
            "description": description,
        }
        if self._callback_url:
            body["callback_url"] = self._callback_url

        r = await self._http.request(
            "POST",
            f"{self._base_url}{self._initiate_path}",
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json_body=body,
        )
        if not r.parsed:
            logger.error("SwiftPay initiate returned unparsable body (HTTP %d): %s", r.status_code, r.text[:200])
            raise GatewayResponseError(
                "Invalid response from payment service",
                status_code=r.status_code,
                raw_body=r.text,
            )

        payload = r.payload
        transaction_id = as_text(first_present(payload, *TRANSACTION_ID_FIELDS))
        accepted = r.status_code < 400 and _accepted_flag(payload) and transaction_id is not None
        message = as_text(first_present(payload, "message", "massage", "error", "data.message")) or ""

        return InitiationResult(
            accepted=accepted,
            transaction_id=transaction_id,
            message=message,
            payload=payload,
            raw_body=r.text,
        )

    async def query_status(self, transaction_id: str) -> StatusQueryResult:
        r = await self._http.request(
            "POST",
            f"{self._base_url}{self._verify_path}",
            headers={"Content-Type": "application/json"},
            json_body={"checkoutId": transaction_id, "apiKey": self._api_key},
        )
        if not r.parsed:
            logger.warning("SwiftPay verification for %s could not be parsed (HTTP %d)", transaction_id, r.status_code)
            return StatusQueryResult(http_status=r.status_code, raw_body=r.text)

        return StatusQueryResult(
            http_status=r.status_code,
            raw_body=r.text,
            payload=r.payload,
            result=extract_result(r.payload),
        )

    async def aclose(self) -> None:
        await self._http.aclose()


def extract_result(payload: dict[str, Any]) -> ProviderResult:
    """Pull the Daraja result fields out of whichever container SwiftPay used."""
    container: dict[str, Any] = {}
    for path in RESULT_CONTAINERS:
        found = first_present(payload, path)
        if isinstance(found, dict):
            container = found
            break

    provider_status = as_text(payload.get("status") or container.get("status")) or ""
    return ProviderResult(
        result_code=as_text(container.get("resultCode")),
        result_desc=as_text(container.get("resultDesc")),
        receipt_number=as_text(container.get("mpesaReceiptNumber")),
        provider_status=provider_status.lower(),
    )


def _accepted_flag(payload: dict[str, Any]) -> bool:
    flag = payload.get("success", payload.get("status"))
    if isinstance(flag, bool):
        return flag
    return str(flag).strip().lower() in _TRUTHY


def _amount_text(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else f"{amount:.2f}"
