from earnspark.models.enums import TERMINAL_STATUSES, AuditAction, PaymentStatus, RejectReason
from earnspark.models.payment import Base, PaymentEvent, PaymentIntent

__all__ = [
    "Base",
    "PaymentIntent",
    "PaymentEvent",
    "PaymentStatus",
    "AuditAction",
    "RejectReason",
    "TERMINAL_STATUSES",
]
