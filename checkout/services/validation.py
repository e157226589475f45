"""
Client-side validation of payer input.

Runs before the charge-initiation call; a failure here never reaches the network.
Accepted phone numbers are East African MSISDNs in international format:
Kenya (254), Tanzania (255), Uganda (256), Rwanda (250) followed by 9 digits.
"""
import math
import re
from typing import Optional

from checkout.errors import PaymentValidationError


MSISDN_PATTERN = re.compile(r"^(254|255|256|250)[0-9]{9}$")

MAX_AMOUNT = 999_999_999


def validate_msisdn(value: Optional[str]) -> str:
    """Return the cleaned MSISDN or raise PaymentValidationError."""
    cleaned = re.sub(r"\s+", "", value or "")
    if not cleaned:
        raise PaymentValidationError("Phone number is required")
    if not MSISDN_PATTERN.match(cleaned):
        raise PaymentValidationError(
            "Invalid phone number. Use international format, e.g. 254712345678"
        )
    return cleaned


def validate_amount(amount, minimum: Optional[float] = None, currency: str = "KES") -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise PaymentValidationError("Amount must be a number")

    if not math.isfinite(value) or value <= 0:
        raise PaymentValidationError("Amount must be greater than 0")
    if value > MAX_AMOUNT:
        raise PaymentValidationError("Amount is too large")
    if minimum is not None and value < minimum:
        raise PaymentValidationError(f"Minimum amount is {currency} {minimum:g}")
    return value
