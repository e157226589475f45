from typing import Dict, Any

from checkout.gateways.base import BaseGateway, ChargeRequest
from checkout.gateways.functions import FunctionsClient
from checkout.services.normalizer import ChargeResult, normalize_charge_response


class InvoiceStkGateway(BaseGateway):
    """
    M-Pesa STK push for a merchant invoice.
    Remote function: `mpesa-stk-push`
    Reference field: `checkoutRequestId`
    """

    function_name = "mpesa-stk-push"

    def __init__(self, functions: FunctionsClient):
        self.functions = functions

    @property
    def gateway_name(self) -> str:
        return "mpesa_invoice"

    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        return {
            "invoiceId": request.target_id,
            "phoneNumber": request.phone_number,
            "amount": request.amount,
            "description": request.description,
        }

    async def initiate_charge(self, request: ChargeRequest) -> ChargeResult:
        raw = await self.functions.invoke(self.function_name, self.build_payload(request))
        return normalize_charge_response(self.gateway_name, raw)
