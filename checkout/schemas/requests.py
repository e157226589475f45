from pydantic import BaseModel, validator

from checkout.services.validation import validate_msisdn


class PhoneNumberRequest(BaseModel):
    phone_number: str

    @validator("phone_number")
    def validate_phone_number(cls, v):
        # PaymentValidationError is a ValueError, so pydantic reports it as a 422
        return validate_msisdn(v)


class InvoicePaymentRequest(PhoneNumberRequest):
    pass


class LinkPaymentRequest(PhoneNumberRequest):
    amount: float


class SubscriptionUpgradeRequest(PhoneNumberRequest):
    user_id: str
    plan_id: str
