from typing import List

from fastapi import APIRouter, Depends, HTTPException

from checkout.dependencies import get_registry
from checkout.errors import AttemptConflictError, ChargeInitiationError
from checkout.gateways.base import ChargeRequest
from checkout.routers.attempts import to_attempt_response
from checkout.schemas.requests import SubscriptionUpgradeRequest
from checkout.schemas.responses import AttemptResponse, PlanResponse
from checkout.services.attempts import AttemptRegistry
from checkout.services.plans import PLANS, get_plan

router = APIRouter()


@router.get("/plans", response_model=List[PlanResponse])
def list_plans():
    return [PlanResponse(**plan) for plan in PLANS]


@router.post("/upgrade", response_model=AttemptResponse, status_code=202)
async def upgrade_plan(
    request: SubscriptionUpgradeRequest,
    registry: AttemptRegistry = Depends(get_registry),
):
    """
    Pay for a plan upgrade via M-PESA. The plan is activated by the payment
    callback; this endpoint only initiates the charge and watches for it.
    """
    plan = get_plan(request.plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail=f"Plan {request.plan_id} not found")
    if plan["price"] == 0:
        raise HTTPException(status_code=400, detail=f"The {plan['name']} plan is free; no payment needed")

    charge = ChargeRequest(
        target_id=request.user_id,
        phone_number=request.phone_number,
        amount=plan["price"],
        currency=plan["currency"],
        plan_name=plan["id"],
    )

    try:
        attempt = await registry.start("subscription", charge, target={"plan": plan["id"]})
    except AttemptConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ChargeInitiationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return to_attempt_response(attempt)
