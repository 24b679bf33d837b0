"""Tests for payment request checks."""

from earnspark.engine.validation import check_payment_request
from earnspark.models.enums import RejectReason


class TestValidRequests:
    def test_local_format(self):
        result = check_payment_request("0712345678", 20)
        assert result.valid is True
        assert result.phone_number == "254712345678"

    def test_international_format(self):
        result = check_payment_request("+254712345678", 125.0)
        assert result.valid is True
        assert result.phone_number == "254712345678"


class TestRejectReasons:
    def test_missing_phone(self):
        result = check_payment_request(None, 20)
        assert not result.valid
        assert result.reject_reason == RejectReason.MISSING_PHONE
        assert result.message == "Phone number is required"

    def test_blank_phone(self):
        result = check_payment_request("   ", 20)
        assert result.reject_reason == RejectReason.MISSING_PHONE

    def test_invalid_phone(self):
        result = check_payment_request("12345", 20)
        assert not result.valid
        assert result.reject_reason == RejectReason.INVALID_PHONE

    def test_zero_amount(self):
        result = check_payment_request("0712345678", 0)
        assert result.reject_reason == RejectReason.INVALID_AMOUNT

    def test_negative_amount(self):
        result = check_payment_request("0712345678", -5)
        assert result.reject_reason == RejectReason.INVALID_AMOUNT

    def test_none_amount(self):
        result = check_payment_request("0712345678", None)
        assert result.reject_reason == RejectReason.INVALID_AMOUNT


class TestPriorityOrder:
    def test_phone_checked_before_amount(self):
        result = check_payment_request(None, -1)
        assert result.reject_reason == RejectReason.MISSING_PHONE
