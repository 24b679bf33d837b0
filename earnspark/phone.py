"""Kenyan mobile number normalization for M-Pesa STK pushes."""

import re

DEFAULT_COUNTRY_CODE = "254"
_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Reduce a user-entered number to the provider's international form.

    "0712 345 678", "712345678", "+254712345678" and "254712345678" all
    become "254712345678". Applying it twice changes nothing.
    """
    cleaned = _NON_DIGITS.sub("", raw or "")
    if cleaned.startswith("0"):
        return country_code + cleaned[1:]
    if not cleaned.startswith(country_code):
        return country_code + cleaned
    return cleaned


def is_valid_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> bool:
    formatted = normalize_phone(raw, country_code)
    return len(formatted) == len(country_code) + 9 and formatted.startswith(country_code)
