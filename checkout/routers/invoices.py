from fastapi import APIRouter, Depends, HTTPException

from checkout.dependencies import get_registry, get_store
from checkout.errors import AttemptConflictError, ChargeInitiationError
from checkout.gateways.base import ChargeRequest
from checkout.routers.attempts import to_attempt_response
from checkout.schemas.requests import InvoicePaymentRequest
from checkout.schemas.responses import AttemptResponse, InvoiceResponse
from checkout.services.attempts import AttemptRegistry
from checkout.services.store import PaymentStore

router = APIRouter()


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str, store: PaymentStore = Depends(get_store)):
    invoice = await store.get_invoice(invoice_id)
    if invoice is None:
        raise HTTPException(status_code=404, detail=f"Invoice {invoice_id} not found")
    return InvoiceResponse(**invoice)


@router.post("/{invoice_id}/pay", response_model=AttemptResponse, status_code=202)
async def pay_invoice(
    invoice_id: str,
    request: InvoicePaymentRequest,
    store: PaymentStore = Depends(get_store),
    registry: AttemptRegistry = Depends(get_registry),
):
    """
    Send an M-PESA STK push for the full invoice amount.

    - 404 if the invoice does not exist
    - 409 if it is already paid, expired, or a payment is already in progress
    - 502 if the charge could not be initiated
    Poll GET /attempts/{attempt_id} for the outcome.
    """
    invoice = await store.get_invoice(invoice_id)
    if invoice is None:
        raise HTTPException(status_code=404, detail=f"Invoice {invoice_id} not found")
    if invoice["is_paid"]:
        raise HTTPException(status_code=409, detail="This invoice has already been paid")
    if invoice["is_expired"]:
        raise HTTPException(status_code=409, detail="This invoice has expired")

    charge = ChargeRequest(
        target_id=invoice_id,
        phone_number=request.phone_number,
        amount=invoice["amount"],
        description=invoice["description"] or f"Payment for {invoice['invoice_number']}",
        currency=invoice["currency"],
    )

    async def refresh_invoice():
        return await store.get_invoice(invoice_id)

    try:
        attempt = await registry.start("invoice", charge, target=invoice, refresh=refresh_invoice)
    except AttemptConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ChargeInitiationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return to_attempt_response(attempt)
