from typing import Dict, Any

from checkout.gateways.base import BaseGateway, ChargeRequest
from checkout.gateways.functions import FunctionsClient
from checkout.services.normalizer import ChargeResult, normalize_charge_response


class SubscriptionMpesaGateway(BaseGateway):
    """
    M-Pesa STK push for a plan upgrade, paid to the platform's own paybill.
    Remote function: `subscription-mpesa`
    Reference field: `checkout_request_id` (snake_case, unlike the others)
    The outcome lands in `subscriptions`, not `transactions`.
    """

    function_name = "subscription-mpesa"

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    @property
    def gateway_name(self) -> str:
        return "subscription"

    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        return {
            "user_id": request.target_id,
            "plan_name": request.plan_name,
            "amount": request.amount,
            "phone_number": request.phone_number,
            "currency": request.currency,
        }

    async def initiate_charge(self, request: ChargeRequest) -> ChargeResult:
        raw = await self.functions.invoke(self.function_name, self.build_payload(request))
        return normalize_charge_response(self.gateway_name, raw)
