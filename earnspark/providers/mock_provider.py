"""
Mock STK push gateway for local development and demos.

Simulates provider behavior:
  - Configurable latency (default 100ms)
  - Configurable rejection rate (default 0%)
  - A push that stays pending for a few status queries, then succeeds once
    and is forgotten
  - Daraja-shaped result payloads with realistic receipt numbers
"""

import asyncio
import random
import string
import uuid
from typing import Optional

from earnspark.config import Settings
from earnspark.providers.base import InitiationResult, PaymentGateway, StatusQueryResult
from earnspark.providers.swiftpay import extract_result


class MockGateway(PaymentGateway):
    def __init__(
        self,
        failure_rate: float = 0.0,
        latency_ms: int = 0,
        pending_polls: int = 2,
    ):
        self._failure_rate = failure_rate
        self._latency_ms = latency_ms
        self._pending_polls = pending_polls
        self._polls: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "MockGateway":
        return cls(
            failure_rate=settings.mock_failure_rate,
            latency_ms=settings.mock_latency_ms,
            pending_polls=settings.mock_pending_polls,
        )

    @property
    def name(self) -> str:
        return "mock"

    async def initiate(
        self,
        phone_number: str,
        amount: float,
        reference: str,
        description: str,
    ) -> InitiationResult:
        await self._simulate_latency()

        if random.random() < self._failure_rate:
            payload = {"success": False, "message": "Mock rejection: subscriber not reachable"}
            return InitiationResult(accepted=False, transaction_id=None, message=payload["message"], payload=payload)

        checkout_id = f"ws_CO_{uuid.uuid4().hex[:16]}"
        self._polls[checkout_id] = 0
        payload = {"success": True, "data": {"checkoutRequestId": checkout_id, "reference": reference}}
        return InitiationResult(accepted=True, transaction_id=checkout_id, message="STK push sent", payload=payload)

    async def query_status(self, transaction_id: str) -> StatusQueryResult:
        await self._simulate_latency()

        seen = self._polls.get(transaction_id)
        if seen is None:
            payload = {"status": "not_found"}
        elif seen < self._pending_polls:
            self._polls[transaction_id] = seen + 1
            payload = {"status": "pending", "result": {}}
        else:
            del self._polls[transaction_id]
            payload = {
                "status": "success",
                "result": {
                    "resultCode": 0,
                    "resultDesc": "The service request is processed successfully.",
                    "mpesaReceiptNumber": _receipt(),
                },
            }
        return StatusQueryResult(http_status=200, payload=payload, result=extract_result(payload))

    async def _simulate_latency(self, jitter: Optional[float] = None) -> None:
        if self._latency_ms > 0:
            jitter = jitter if jitter is not None else random.uniform(0.5, 1.5)
            await asyncio.sleep(self._latency_ms * jitter / 1000)


def _receipt() -> str:
    return "".join(random.choices(string.ascii_uppercase + string.digits, k=10))
