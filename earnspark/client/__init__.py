from earnspark.client.poller import (
    PaymentClient,
    PaymentInitiationError,
    PaymentStatusError,
    PollHandle,
    PollOutcome,
    PollResult,
)

__all__ = [
    "PaymentClient",
    "PaymentInitiationError",
    "PaymentStatusError",
    "PollHandle",
    "PollOutcome",
    "PollResult",
]
