"""
Client side of the payment lifecycle: initiate once, then poll.

One polling loop replaces the per-screen copies: interval and attempt cap are
parameters, and every poll runs in a task the caller can cancel without any
effect on the server.

    async with PaymentClient("https://pay.earnspark.example") as client:
        handle = await client.start_payment("0712345678", amount=20)
        result = await handle.wait()
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from earnspark.phone import DEFAULT_COUNTRY_CODE, is_valid_phone, normalize_phone

logger = logging.getLogger("earnspark.client")

DEFAULT_INTERVAL_S = 2.0
DEFAULT_MAX_ATTEMPTS = 60

StatusCallback = Callable[[dict[str, Any]], None]


class PollOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"  # Provider reported a failure
    TIMEOUT = "timeout"  # Attempt cap reached without a final result
    CANCELLED = "cancelled"  # Caller stopped polling


@dataclass
class PollResult:
    outcome: PollOutcome
    message: str
    attempts: int
    payment: Optional[dict[str, Any]] = None


class PaymentInitiationError(Exception):
    """The payment could not be started; no polling took place."""

    def __init__(self, message: str, response: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.response = response


class PaymentStatusError(Exception):
    """A single status check could not be completed."""


class PollHandle:
    """A running poll. Cancel it, or await its result."""

    def __init__(self, reference: str, task: "asyncio.Task[PollResult]"):
        self.reference = reference
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> PollResult:
        # The loop reports its own cancellation; a task cancelled before it
        # first ran never checked anything.
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return PollResult(outcome=PollOutcome.CANCELLED, message="Polling stopped", attempts=0)
            raise


class PaymentClient:
    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        country_code: str = DEFAULT_COUNTRY_CODE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._country_code = country_code
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_s, transport=transport)

    async def __aenter__(self) -> "PaymentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def initiate_payment(
        self,
        phone_number: str,
        amount: Optional[float] = None,
        description: Optional[str] = None,
    ) -> str:
        """
        Start an STK push and return the checkout id to poll with.

        Raises:
            PaymentInitiationError: Invalid phone, network failure, or a
                rejection by the service or the provider.
        """
        if not is_valid_phone(phone_number, self._country_code):
            raise PaymentInitiationError("Please enter a valid Kenyan phone number.")

        body: dict[str, Any] = {"phoneNumber": normalize_phone(phone_number, self._country_code)}
        if amount is not None:
            body["amount"] = amount
        if description:
            body["description"] = description

        try:
            r = await self._client.post("/api/initiate-payment", json=body)
            data = r.json()
        except httpx.HTTPError as e:
            raise PaymentInitiationError("Network error. Please try again later.") from e
        except ValueError as e:
            raise PaymentInitiationError("Invalid response from payment service") from e

        if not isinstance(data, dict):
            raise PaymentInitiationError("Invalid response from payment service")
        ids = data.get("data") or {}
        checkout_id = ids.get("checkoutRequestId") or ids.get("externalReference")
        if not data.get("success") or not checkout_id:
            raise PaymentInitiationError(data.get("message") or "Failed to initiate payment", response=data)
        return checkout_id

    async def check_status(self, reference: str) -> dict[str, Any]:
        try:
            r = await self._client.get("/api/payment-status", params={"reference": reference})
            data = r.json()
        except httpx.HTTPError as e:
            raise PaymentStatusError(f"Status check for {reference} failed: {e!r}") from e
        except ValueError as e:
            raise PaymentStatusError(f"Status check for {reference} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise PaymentStatusError(f"Status check for {reference} returned {type(data).__name__}")
        return data

    def poll(
        self,
        reference: str,
        interval_s: float = DEFAULT_INTERVAL_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_update: Optional[StatusCallback] = None,
    ) -> PollHandle:
        """Start polling in the background and return a handle to it."""
        task = asyncio.create_task(self._poll_loop(reference, interval_s, max_attempts, on_update))
        return PollHandle(reference, task)

    async def start_payment(
        self,
        phone_number: str,
        amount: Optional[float] = None,
        description: Optional[str] = None,
        interval_s: float = DEFAULT_INTERVAL_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_update: Optional[StatusCallback] = None,
    ) -> PollHandle:
        checkout_id = await self.initiate_payment(phone_number, amount, description)
        return self.poll(checkout_id, interval_s=interval_s, max_attempts=max_attempts, on_update=on_update)

    async def _poll_loop(
        self,
        reference: str,
        interval_s: float,
        max_attempts: int,
        on_update: Optional[StatusCallback],
    ) -> PollResult:
        attempts = 0
        try:
            for attempt in range(1, max_attempts + 1):
                await asyncio.sleep(interval_s)
                attempts = attempt

                try:
                    data = await self.check_status(reference)
                except PaymentStatusError as e:
                    logger.warning("Poll %d/%d for %s failed: %s", attempt, max_attempts, reference, e)
                    continue

                if on_update is not None:
                    on_update(data)

                payment = data.get("payment") if data.get("success") else None
                status = (payment or {}).get("status")
                if status == "SUCCESS":
                    return PollResult(PollOutcome.SUCCESS, "Payment completed", attempt, payment)
                if status == "FAILED":
                    return PollResult(PollOutcome.FAILED, payment.get("resultDesc") or "Payment failed", attempt, payment)
        except asyncio.CancelledError:
            logger.info("Stopped polling %s after %d attempts", reference, attempts)
            return PollResult(PollOutcome.CANCELLED, "Polling stopped", attempts)

        logger.info("Gave up polling %s after %d attempts", reference, max_attempts)
        return PollResult(PollOutcome.TIMEOUT, "Payment timeout - please try again", max_attempts)
