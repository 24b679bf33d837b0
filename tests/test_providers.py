"""Tests for the SwiftPay and PayHero adapters, driven through httpx.MockTransport."""

import json

import httpx
import pytest

from earnspark.config import Settings
from earnspark.engine.reconcile import reconcile_payment
from earnspark.engine.retry import GatewayResponseError, GatewayTransportError, RateLimitError
from earnspark.models.enums import PaymentStatus
from earnspark.providers import MockGateway, PayHeroGateway, SwiftPayGateway, build_gateway
from earnspark.providers import payhero, swiftpay


def _settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        swiftpay_api_key="sp-key-123",
        swiftpay_backend_url="https://swiftpay.test",
        payhero_base_url="https://payhero.test",
        payhero_api_username="user",
        payhero_api_password="secret",
        payhero_channel_id=911,
    )
    values.update(overrides)
    return Settings(**values)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestSwiftPayInitiate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"success": True, "checkout_id": "ws_CO_1"},
        {"success": "200", "transaction_request_id": "ws_CO_1"},
        {"success": True, "data": {"checkoutRequestId": "ws_CO_1"}},
        {"status": "success", "data": {"CheckoutRequestID": "ws_CO_1"}},
    ])
    async def test_transaction_id_field_variants(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        result = await gw.initiate("0712345678", 20, "EarnSpark-1-1", "Account Activation Fee")
        assert result.accepted is True
        assert result.transaction_id == "ws_CO_1"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "checkout_id": "ws_CO_1"})

        gw = SwiftPayGateway(_settings(callback_url="https://earnspark.test/cb"), client=_client(handler))
        await gw.initiate("+254 712 345 678", 20.0, "EarnSpark-1-1", "Withdrawal")

        assert seen["url"] == "https://swiftpay.test/api/mpesa/stk-push-api"
        assert seen["auth"] == "Bearer sp-key-123"
        assert seen["body"] == {
            "phone_number": "254712345678",
            "amount": "20",
            "reference": "EarnSpark-1-1",
            "description": "Withdrawal",
            "callback_url": "https://earnspark.test/cb",
        }

    @pytest.mark.asyncio
    async def test_rejection(self):
        def handler(request):
            return httpx.Response(400, json={"success": False, "message": "Invalid phone"})

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        result = await gw.initiate("0712345678", 20, "r", "d")
        assert result.accepted is False
        assert result.message == "Invalid phone"

    @pytest.mark.asyncio
    async def test_unparsable_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        with pytest.raises(GatewayResponseError):
            await gw.initiate("0712345678", 20, "r", "d")

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        with pytest.raises(GatewayTransportError):
            await gw.initiate("0712345678", 20, "r", "d")

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "3"}, json={"message": "slow down"})

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        with pytest.raises(RateLimitError) as exc:
            await gw.initiate("0712345678", 20, "r", "d")
        assert exc.value.retry_after == 3.0


class TestSwiftPayStatus:
    @pytest.mark.asyncio
    async def test_verification_request(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"status": "success", "data": {"result": {"resultCode": "0", "mpesaReceiptNumber": "R1"}}})

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        query = await gw.query_status("ws_CO_1")

        assert seen["url"] == "https://swiftpay.test/api/mpesa-verification-proxy"
        assert seen["body"] == {"checkoutId": "ws_CO_1", "apiKey": "sp-key-123"}
        assert query.result.result_code == "0"
        assert query.result.receipt_number == "R1"
        assert query.result.provider_status == "success"

    @pytest.mark.asyncio
    async def test_unparsable_body_is_not_an_error(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        gw = SwiftPayGateway(_settings(), client=_client(handler))
        query = await gw.query_status("ws_CO_1")
        assert query.http_status == 502
        assert query.payload is None
        assert query.result is None
        assert query.raw_body == "Bad Gateway"

    @pytest.mark.parametrize("payload,code", [
        ({"result": {"resultCode": 0}}, "0"),
        ({"data": {"result": {"resultCode": 1032}}}, "1032"),
        ({"payment": {"resultCode": "1"}}, "1"),
        ({"data": {"payment": {"resultCode": "2001"}}}, "2001"),
        ({"status": "success"}, None),
    ])
    def test_result_containers(self, payload, code):
        assert swiftpay.extract_result(payload).result_code == code


class TestPayHero:
    @pytest.mark.asyncio
    async def test_initiate(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "status": "QUEUED", "reference": "ref-1", "CheckoutRequestID": "ws_CO_9"})

        gw = PayHeroGateway(_settings(), client=_client(handler))
        result = await gw.initiate("0712345678", 125.0, "EarnSpark-1-1", "Account Activation Fee")

        assert result.accepted is True
        assert result.transaction_id == "ws_CO_9"
        assert seen["url"] == "https://payhero.test/api/v2/payments"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"]["amount"] == 125
        assert seen["body"]["channel_id"] == 911
        assert seen["body"]["external_reference"] == "EarnSpark-1-1"

    @pytest.mark.asyncio
    async def test_status_url(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"status": "QUEUED"})

        gw = PayHeroGateway(_settings(), client=_client(handler))
        query = await gw.query_status("ws_CO_9")
        assert seen == {"method": "GET", "url": "https://payhero.test/api/v2/payments/ws_CO_9"}
        assert query.result.result_code is None

    @pytest.mark.parametrize("payload,code", [
        ({"status": "SUCCESS", "ResultCode": 0, "provider_reference": "R9"}, "0"),
        ({"status": "FAILED", "ResultCode": 1037}, "1037"),
        ({"status": "Failed", "result_code": "1032"}, "1032"),
        ({"status": "SUCCESS"}, None),
        ({"status": "COMPLETED"}, None),
        ({"status": "CANCELLED"}, None),
        ({"status": "QUEUED"}, None),
    ])
    def test_only_result_code_is_copied(self, payload, code):
        result = payhero.extract_result(payload)
        assert result.result_code == code
        assert result.provider_status == str(payload["status"]).lower()

    def test_receipt_and_description(self):
        result = payhero.extract_result({
            "status": "SUCCESS",
            "ResultCode": 0,
            "ResultDesc": "The service request is processed successfully.",
            "MpesaReceiptNumber": "SAE3YULR0Y",
        })
        assert result.receipt_number == "SAE3YULR0Y"
        assert result.result_desc == "The service request is processed successfully."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,expected", [
        ({"status": "SUCCESS"}, PaymentStatus.PENDING),
        ({"status": "CANCELLED"}, PaymentStatus.PENDING),
        ({"status": "SUCCESS", "ResultCode": 0}, PaymentStatus.SUCCESS),
        ({"status": "FAILED", "ResultCode": 1032}, PaymentStatus.FAILED),
    ])
    async def test_status_word_alone_does_not_settle(self, body, expected):
        def handler(request):
            return httpx.Response(200, json=body)

        gw = PayHeroGateway(_settings(payment_provider="payhero"), client=_client(handler))
        rec = await reconcile_payment("ws_CO_9", gw, None)
        assert rec.status == expected


class TestMockGateway:
    @pytest.mark.asyncio
    async def test_pending_then_success(self):
        gw = MockGateway(pending_polls=2)
        result = await gw.initiate("254712345678", 20, "r", "d")
        codes = [(await gw.query_status(result.transaction_id)).result.result_code for _ in range(3)]
        assert codes == [None, None, "0"]

    @pytest.mark.asyncio
    async def test_forgets_settled_pushes(self):
        gw = MockGateway(pending_polls=0)
        result = await gw.initiate("254712345678", 20, "r", "d")
        first = await gw.query_status(result.transaction_id)
        again = await gw.query_status(result.transaction_id)

        assert first.result.result_code == "0"
        assert again.payload == {"status": "not_found"}
        assert gw._polls == {}

    @pytest.mark.asyncio
    async def test_always_rejects(self):
        gw = MockGateway(failure_rate=1.0)
        result = await gw.initiate("254712345678", 20, "r", "d")
        assert result.accepted is False


class TestFactory:
    def test_builds_named_provider(self):
        assert isinstance(build_gateway(_settings(payment_provider="swiftpay")), SwiftPayGateway)
        assert isinstance(build_gateway(_settings(payment_provider="PayHero")), PayHeroGateway)
        assert isinstance(build_gateway(_settings(payment_provider="mock")), MockGateway)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_gateway(_settings(payment_provider="pesapal"))

    def test_missing_credentials(self):
        assert _settings(swiftpay_api_key=None).missing_provider_config() == "SwiftPay"
        assert _settings(payment_provider="payhero", payhero_channel_id=None).missing_provider_config() == "PayHero"
        assert _settings(payment_provider="mock").missing_provider_config() is None
