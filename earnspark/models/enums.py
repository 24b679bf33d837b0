"""Enumerations for the payment intent domain model."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Canonical lifecycle states for a payment intent."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING

    @property
    def client_label(self) -> str:
        """Status word reported to polling clients."""
        if self is PaymentStatus.SUCCESS:
            return "SUCCESS"
        if self is PaymentStatus.PENDING:
            return "PENDING"
        return "FAILED"


TERMINAL_STATUSES = frozenset(
    {PaymentStatus.SUCCESS.value, PaymentStatus.FAILED.value, PaymentStatus.CANCELLED.value}
)


class AuditAction(str, Enum):
    """Actions recorded in the payment audit trail."""

    INTENT_CREATED = "intent_created"
    STATUS_FINALIZED = "status_finalized"


class RejectReason(str, Enum):
    """Categorized reasons for refusing a payment request before any provider call."""

    MISSING_PHONE = "missing_phone"
    INVALID_PHONE = "invalid_phone"
    INVALID_AMOUNT = "invalid_amount"
