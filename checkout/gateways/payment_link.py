from typing import Dict, Any

from checkout.gateways.base import BaseGateway, ChargeRequest
from checkout.gateways.functions import FunctionsClient
from checkout.services.normalizer import ChargeResult, normalize_charge_response


class PaymentLinkStkGateway(BaseGateway):
    """
    STK push for a public payment link; the payer chooses the amount.
    Remote function: `payment-link-stk`
    Reference field: `checkoutRequestId`
    """

    function_name = "payment-link-stk"

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    @property
    def gateway_name(self) -> str:
        return "payment_link"

    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        return {
            "linkSlug": request.target_id,
            "phoneNumber": request.phone_number,
            "amount": request.amount,
        }

    async def initiate_charge(self, request: ChargeRequest) -> ChargeResult:
        raw = await self.functions.invoke(self.function_name, self.build_payload(request))
        return normalize_charge_response(self.gateway_name, raw)
