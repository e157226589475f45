from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    customer_name: str
    amount: float
    currency: str
    description: Optional[str] = None
    status: str
    expires_at: Optional[datetime] = None
    is_paid: bool
    is_expired: bool


class PaymentLinkResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    method_type: str
    method_value: str
    min_amount: float
    currency: str
    link_slug: str
    status: str


class PlanResponse(BaseModel):
    id: str
    name: str
    price: float
    currency: str
    invoice_limit: int  # -1 means unlimited
    features: List[str]


class NotificationResponse(BaseModel):
    level: str
    title: str
    message: str
    created_at: datetime


class AttemptResponse(BaseModel):
    attempt_id: str
    kind: str
    target_id: str
    status: str
    reference: Optional[str] = None
    phone_number: str
    amount: float
    receipt_number: Optional[str] = None
    poll_reads: int
    message: Optional[str] = None
    notifications: List[NotificationResponse]
    target: Optional[Dict[str, Any]] = None
    created_at: datetime
    finished_at: Optional[datetime] = None
