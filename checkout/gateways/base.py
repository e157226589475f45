from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from checkout.services.normalizer import ChargeResult


class ChargeRequest:
    def __init__(
        self,
        target_id: str,
        phone_number: str,
        amount: float,
        description: Optional[str] = None,
        currency: str = "KES",
        plan_name: Optional[str] = None,
    ):
        self.target_id = target_id
        self.phone_number = phone_number
        self.amount = amount
        self.description = description
        self.currency = currency
        self.plan_name = plan_name


class BaseGateway(ABC):
    """Abstract base for the remote functions that initiate a gateway charge."""

    @abstractmethod
    async def initiate_charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Ask the remote function to push a charge to the payer's phone.
        Returns the normalized result; success carries the checkout reference
        the poller correlates on.
        Raises ChargeInitiationError when the function cannot be reached.
        """
        pass

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        pass

    @abstractmethod
    def build_payload(self, request: ChargeRequest) -> Dict[str, Any]:
        pass
