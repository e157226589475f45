"""Subscription plans offered to merchants. Prices are in KES per month."""
from typing import Dict, Any, Optional


PLANS = [
    {
        "id": "starter",
        "name": "Starter",
        "price": 0,
        "currency": "KES",
        "invoice_limit": 10,
        "features": [
            "10 invoices per month",
            "M-PESA STK Push",
            "Basic analytics",
            "Email support",
        ],
    },
    {
        "id": "pro",
        "name": "Professional",
        "price": 1500,
        "currency": "KES",
        "invoice_limit": 100,
        "features": [
            "100 invoices per month",
            "M-PESA STK Push",
            "Advanced analytics",
            "API access",
            "Priority support",
            "Custom branding",
        ],
    },
    {
        "id": "enterprise",
        "name": "Enterprise",
        "price": 5000,
        "currency": "KES",
        "invoice_limit": -1,
        "features": [
            "Unlimited invoices",
            "M-PESA STK Push",
            "Advanced analytics",
            "API access",
            "Priority support",
            "Custom branding",
            "Dedicated account manager",
            "Custom integrations",
        ],
    },
]


def get_plan(plan_id: str) -> Optional[Dict[str, Any]]:
    return next((p for p in PLANS if p["id"] == plan_id), None)
