from fastapi import APIRouter, Depends, HTTPException, Response

from checkout.dependencies import get_registry
from checkout.errors import AttemptStateError
from checkout.schemas.responses import AttemptResponse, NotificationResponse
from checkout.services.attempts import AttemptRegistry, PaymentAttempt

router = APIRouter()


def to_attempt_response(attempt: PaymentAttempt) -> AttemptResponse:
    return AttemptResponse(
        attempt_id=attempt.id,
        kind=attempt.profile.name,
        target_id=attempt.target_id,
        status=attempt.status.value,
        reference=attempt.reference,
        phone_number=attempt.phone_number,
        amount=attempt.amount,
        receipt_number=attempt.receipt_number,
        poll_reads=attempt.poll_reads,
        message=attempt.message,
        notifications=[
            NotificationResponse(
                level=n.level,
                title=n.title,
                message=n.message,
                created_at=n.created_at,
            )
            for n in attempt.notifications
        ],
        target=attempt.target,
        created_at=attempt.created_at,
        finished_at=attempt.finished_at,
    )


@router.get("/{attempt_id}", response_model=AttemptResponse)
async def get_attempt(attempt_id: str, registry: AttemptRegistry = Depends(get_registry)):
    """Current state of a payment attempt, including the notifications to show the payer."""
    try:
        attempt = registry.get(attempt_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return to_attempt_response(attempt)


@router.post("/{attempt_id}/retry", response_model=AttemptResponse)
async def retry_attempt(attempt_id: str, registry: AttemptRegistry = Depends(get_registry)):
    """
    "Try again" after a failure or timeout.

    The attempt returns to idle with its reference discarded; paying again
    initiates a new charge with a new reference.
    """
    try:
        attempt = registry.retry(attempt_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AttemptStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return to_attempt_response(attempt)


@router.delete("/{attempt_id}", status_code=204)
async def cancel_attempt(attempt_id: str, registry: AttemptRegistry = Depends(get_registry)):
    """Stop watching the attempt. The charge itself is not cancelled."""
    try:
        registry.cancel(attempt_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
