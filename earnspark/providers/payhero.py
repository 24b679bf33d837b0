"""
PayHero STK push adapter.

PayHero authenticates with HTTP Basic credentials. Its status body carries a
status word (QUEUED, SUCCESS, FAILED, ...) and, once M-Pesa has answered, the
Daraja ResultCode. Only the ResultCode settles a payment; the status word is
kept for diagnostics.
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

logger = logging.getLogger("earnspark.providers.payhero")


class PayHeroGateway(PaymentGateway):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self._base_url = settings.payhero_base_url.rstrip("/")
        self._auth = (settings.payhero_api_username or "", settings.payhero_api_password or "")
        self._channel_id = settings.payhero_channel_id
        self._callback_url = settings.callback_url
        self._country_code = settings.country_code
        self._http = ProviderHttp(settings.provider_timeout_s, client=client)

    @property
    def name(self) -> str:
        return "payhero"

    async def initiate(
        self,
        phone_number: str,
        amount: float,
        reference: str,
        description: str,
    ) -> InitiationResult:
        body: dict[str, Any] = {
            "amount": int(round(amount)),
            "phone_number": normalize_phone(phone_number, self._country_code),
            "channel_id": self._channel_id,
            "provider": "m-pesa",
            "external_reference": reference,
            "customer_name": description,
        }
        if self._callback_url:
            body["callback_url"] = self._callback_url

        r = await self._http.request(
            "POST",
            f"{self._base_url}/api/v2/payments",
            headers={"Content-Type": "application/json"},
            json_body=body,
            auth=self._auth,
        )
        if not r.parsed:
            logger.error("PayHero initiate returned unparsable body (HTTP %d): %s", r.status_code, r.text[:200])
            raise GatewayResponseError(
                "Invalid response from payment service",
                status_code=r.status_code,
                raw_body=r.text,
            )

        payload = r.payload
        transaction_id = as_text(first_present(payload, "CheckoutRequestID", "reference"))
        accepted = r.status_code < 400 and payload.get("success") is True and transaction_id is not None
        return InitiationResult(
            accepted=accepted,
            transaction_id=transaction_id,
            message=as_text(first_present(payload, "message", "error_message", "error")) or "",
            payload=payload,
            raw_body=r.text,
        )

    async def query_status(self, transaction_id: str) -> StatusQueryResult:
        r = await self._http.request(
            "GET",
            f"{self._base_url}/api/v2/payments/{transaction_id}",
            headers={"Content-Type": "application/json"},
            auth=self._auth,
        )
        if not r.parsed:
            logger.warning("PayHero status for %s could not be parsed (HTTP %d)", transaction_id, r.status_code)
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
    return ProviderResult(
        result_code=as_text(first_present(payload, "ResultCode", "result_code")),
        result_desc=as_text(first_present(payload, "ResultDesc", "result_desc", "message")),
        receipt_number=as_text(first_present(payload, "MpesaReceiptNumber", "mpesa_receipt_number", "provider_reference")),
        provider_status=str(payload.get("status") or "").lower(),
    )
