from fastapi import APIRouter, Depends, HTTPException

from checkout.dependencies import get_registry, get_store
from checkout.errors import AttemptConflictError, ChargeInitiationError, PaymentValidationError
from checkout.gateways.base import ChargeRequest
from checkout.routers.attempts import to_attempt_response
from checkout.schemas.requests import LinkPaymentRequest
from checkout.schemas.responses import AttemptResponse, PaymentLinkResponse
from checkout.services.attempts import AttemptRegistry
from checkout.services.store import PaymentStore
from checkout.services.validation import validate_amount

router = APIRouter()


@router.get("/{slug}", response_model=PaymentLinkResponse)
async def get_payment_link(slug: str, store: PaymentStore = Depends(get_store)):
    link = await store.get_payment_link(slug)
    if link is None:
        raise HTTPException(
            status_code=404,
            detail="This payment link does not exist or has been disabled.",
        )
    return PaymentLinkResponse(**link)


@router.post("/{slug}/pay", response_model=AttemptResponse, status_code=202)
async def pay_payment_link(
    slug: str,
    request: LinkPaymentRequest,
    store: PaymentStore = Depends(get_store),
    registry: AttemptRegistry = Depends(get_registry),
):
    """
    Pay a public payment link with a payer-chosen amount (at least the link's minimum).
    """
    link = await store.get_payment_link(slug)
    if link is None:
        raise HTTPException(
            status_code=404,
            detail="This payment link does not exist or has been disabled.",
        )

    try:
        amount = validate_amount(request.amount, minimum=link["min_amount"], currency=link["currency"])
    except PaymentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    charge = ChargeRequest(
        target_id=slug,
        phone_number=request.phone_number,
        amount=amount,
        description=link["title"],
        currency=link["currency"],
    )

    try:
        attempt = await registry.start("payment_link", charge, target=link)
    except AttemptConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ChargeInitiationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return to_attempt_response(attempt)
