"""
Normalizes the heterogeneous shapes the checkout service reads.

Each charge-initiation function names its correlation reference differently,
and the store tables use different status vocabularies. This module maps all
of them to one canonical form.
"""
from typing import Dict, Any, Optional


# Where each remote function puts the checkout request id
REFERENCE_FIELD_MAP = {
    "mpesa_invoice": "checkoutRequestId",
    "payment_link": "checkoutRequestId",
    "subscription": "checkout_request_id",
}

# Canonical record states: pending / completed / failed
RECORD_STATES = {
    "transactions": {
        "pending": "pending",
        "completed": "completed",
        "failed": "failed",
    },
    "subscriptions": {
        "pending": "pending",
        "active": "completed",
        "failed": "failed",
        "cancelled": "failed",
    },
}


class ChargeResult:
    def __init__(
        self,
        success: bool,
        checkout_request_id: Optional[str],
        raw_response: Dict[str, Any],
        message: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.success = success
        self.checkout_request_id = checkout_request_id
        self.raw_response = raw_response
        self.message = message
        self.error = error


def normalize_charge_response(gateway_name: str, raw_response: Dict[str, Any]) -> ChargeResult:
    """
    Maps a remote function's response to a ChargeResult.

    A charge only counts as accepted when the function reports success AND
    hands back a reference to poll on.
    """
    reference_field = REFERENCE_FIELD_MAP.get(gateway_name)
    if not reference_field:
        raise ValueError(f"Unknown gateway: {gateway_name}")

    reference = raw_response.get(reference_field) or None
    accepted = raw_response.get("success") is True

    error = None
    if not accepted:
        error = raw_response.get("error") or "Failed to initiate payment"
        details = raw_response.get("details")
        if isinstance(details, str) and details:
            error = f"{error}: {details}"
    elif reference is None:
        error = "Payment was initiated but no checkout reference was returned"

    return ChargeResult(
        success=accepted and reference is not None,
        checkout_request_id=reference,
        raw_response=raw_response,
        message=raw_response.get("message"),
        error=error,
    )


def normalize_record_status(source: str, raw_status: Optional[str]) -> str:
    """Map a store status to pending / completed / failed. Unknown values stay pending."""
    states = RECORD_STATES.get(source)
    if states is None:
        raise ValueError(f"Unknown record source: {source}")
    return states.get((raw_status or "").lower(), "pending")


def classify_record(source: str, record: Optional[Dict[str, Any]]) -> str:
    if record is None:
        return "pending"
    return normalize_record_status(source, record.get("status"))
