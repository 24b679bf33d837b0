"""
Abstract payment gateway interface.

Every mobile-money provider (SwiftPay, PayHero) is wrapped in an adapter that
translates its request and response shapes into the types below, so the
initiation and reconciliation code never sees provider-specific field names.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class InitiationResult:
    """Outcome of asking the provider to send an STK push."""

    accepted: bool
    transaction_id: Optional[str]
    message: str = ""
    payload: Optional[dict[str, Any]] = None
    raw_body: str = ""


@dataclass
class ProviderResult:
    """Final-result fields extracted from a provider status payload."""

    result_code: Optional[str] = None
    result_desc: Optional[str] = None
    receipt_number: Optional[str] = None
    provider_status: str = ""  # Provider's own top-level status word, lowercased


@dataclass
class StatusQueryResult:
    """
    Raw and parsed outcome of a provider status query.

    `payload` and `result` are None when the body could not be parsed; callers
    treat that as inconclusive.
    """

    http_status: Optional[int]
    raw_body: str = ""
    payload: Optional[dict[str, Any]] = None
    result: Optional[ProviderResult] = None


class PaymentGateway(ABC):
    """Abstract base class for STK push providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g. 'swiftpay')."""
        ...

    @abstractmethod
    async def initiate(
        self,
        phone_number: str,
        amount: float,
        reference: str,
        description: str,
    ) -> InitiationResult:
        """
        Ask the provider to prompt the customer's phone for a PIN.

        Raises:
            GatewayTransportError: The provider could not be reached.
            GatewayResponseError: The provider's answer was not JSON.
            RateLimitError: The provider throttled the request (safe to retry).
        """
        ...

    @abstractmethod
    async def query_status(self, transaction_id: str) -> StatusQueryResult:
        """
        Fetch the provider's current view of a transaction.

        Never raises on an unparsable body.

        Raises:
            GatewayTransportError: The provider could not be reached.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the gateway."""
        return None


def first_present(payload: Optional[dict[str, Any]], *paths: str) -> Optional[Any]:
    """
    Return the first non-empty value found at any dotted path in `payload`.

    >>> first_present({"data": {"id": "x"}}, "id", "data.id")
    'x'
    """
    if not isinstance(payload, dict):
        return None
    for path in paths:
        node: Any = payload
        for key in path.split("."):
            if not isinstance(node, dict) or key not in node:
                node = None
                break
            node = node[key]
        if node not in (None, ""):
            return node
    return None


def as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)
