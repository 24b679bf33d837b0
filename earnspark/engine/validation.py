"""
Payment request checks with categorized reject reasons.

Before a reference is generated or the provider is called, we verify:
  1. A phone number was supplied
  2. It normalizes to a Kenyan mobile number (254 + 9 digits)
  3. The amount is positive
"""

from dataclasses import dataclass
from typing import Optional

from earnspark.models.enums import RejectReason
from earnspark.phone import DEFAULT_COUNTRY_CODE, is_valid_phone, normalize_phone


@dataclass
class ValidationResult:
    """Result of checking a payment request."""

    valid: bool
    reject_reason: Optional[RejectReason] = None
    message: str = ""
    phone_number: Optional[str] = None  # Normalized, when valid


def check_payment_request(
    phone_number: Optional[str],
    amount: Optional[float],
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> ValidationResult:
    """
    Check whether a payment request may be sent to the provider.

    Args:
        phone_number: Customer's M-Pesa number as entered.
        amount: Amount in KES.
        country_code: Dialing prefix used for normalization.

    Returns:
        ValidationResult with the normalized phone number, or a categorized reason.
    """
    if phone_number is None or not str(phone_number).strip():
        return ValidationResult(
            valid=False,
            reject_reason=RejectReason.MISSING_PHONE,
            message="Phone number is required",
        )

    if not is_valid_phone(phone_number, country_code):
        return ValidationResult(
            valid=False,
            reject_reason=RejectReason.INVALID_PHONE,
            message=f"Invalid phone number: {phone_number}",
        )

    if amount is None or amount <= 0:
        return ValidationResult(
            valid=False,
            reject_reason=RejectReason.INVALID_AMOUNT,
            message=f"Invalid amount: {amount}",
        )

    return ValidationResult(valid=True, phone_number=normalize_phone(phone_number, country_code))
