"""Shared test fixtures."""

from typing import Any, Optional, Union

import httpx
import pytest
import pytest_asyncio

from earnspark.config import Settings
from earnspark.engine.retry import GatewayTransportError
from earnspark.main import create_app
from earnspark.providers.base import InitiationResult, PaymentGateway, StatusQueryResult
from earnspark.providers.swiftpay import extract_result
from earnspark.store import PaymentStore

GARBAGE = "<html>502 Bad Gateway</html>"


class FakeGateway(PaymentGateway):
    """
    Scripted gateway.

    `status_payload` is what the next status query returns: a dict (parsed
    like a SwiftPay verification body), the GARBAGE string (unparsable), or
    an exception instance to raise.
    """

    def __init__(self, transaction_id: str = "ws_CO_123456789"):
        self.transaction_id = transaction_id
        self.initiate_result: Optional[InitiationResult] = None
        self.initiate_error: Optional[Exception] = None
        self.status_payload: Union[dict[str, Any], str, Exception] = {"status": "pending"}
        self.initiate_calls: list[dict[str, Any]] = []
        self.status_calls: list[str] = []

    @property
    def name(self) -> str:
        return "fake"

    async def initiate(self, phone_number, amount, reference, description) -> InitiationResult:
        self.initiate_calls.append({
            "phone_number": phone_number,
            "amount": amount,
            "reference": reference,
            "description": description,
        })
        if self.initiate_error is not None:
            raise self.initiate_error
        if self.initiate_result is not None:
            return self.initiate_result
        return InitiationResult(
            accepted=True,
            transaction_id=self.transaction_id,
            payload={"success": True, "data": {"checkoutRequestId": self.transaction_id}},
        )

    async def query_status(self, transaction_id: str) -> StatusQueryResult:
        self.status_calls.append(transaction_id)
        payload = self.status_payload
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, str):
            return StatusQueryResult(http_status=502, raw_body=payload)
        return StatusQueryResult(http_status=200, raw_body="{}", payload=payload, result=extract_result(payload))


def success_payload(receipt: str = "SAE3YULR0Y") -> dict[str, Any]:
    return {
        "status": "success",
        "data": {"result": {"resultCode": 0, "resultDesc": "The service request is processed successfully.", "mpesaReceiptNumber": receipt}},
    }


def failed_payload(code: str = "1032", desc: str = "Request cancelled by user") -> dict[str, Any]:
    return {"status": "failed", "result": {"resultCode": code, "resultDesc": desc}}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        payment_provider="mock",
        provider_max_retries=0,
        admin_token="test-admin-token",
    )


@pytest_asyncio.fixture
async def store(settings):
    """A fresh SQLite-backed store for each test."""
    store = PaymentStore.from_url(settings.database_url)
    await store.init()
    yield store
    await store.dispose()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def app(settings, gateway, store):
    return create_app(settings, gateway=gateway, store=store)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


@pytest.fixture
def network_down() -> GatewayTransportError:
    return GatewayTransportError("connection refused")
