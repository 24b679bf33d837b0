from typing import Optional

import httpx

from earnspark.config import Settings
from earnspark.providers.base import InitiationResult, PaymentGateway, ProviderResult, StatusQueryResult
from earnspark.providers.mock_provider import MockGateway
from earnspark.providers.payhero import PayHeroGateway
from earnspark.providers.swiftpay import SwiftPayGateway

__all__ = [
    "PaymentGateway",
    "InitiationResult",
    "ProviderResult",
    "StatusQueryResult",
    "SwiftPayGateway",
    "PayHeroGateway",
    "MockGateway",
    "build_gateway",
]


def build_gateway(settings: Settings, client: Optional[httpx.AsyncClient] = None) -> PaymentGateway:
    """Construct the gateway named by PAYMENT_PROVIDER."""
    provider = settings.payment_provider.lower()
    if provider == "swiftpay":
        return SwiftPayGateway(settings, client=client)
    if provider == "payhero":
        return PayHeroGateway(settings, client=client)
    if provider == "mock":
        return MockGateway.from_settings(settings)
    raise ValueError(f"Unsupported payment provider: {settings.payment_provider}")
