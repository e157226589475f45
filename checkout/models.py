"""
Tables of the transaction store that the checkout service reads.

Rows are written by the charge-initiation functions and by the gateway
callbacks; this service only ever reads them.
"""
from sqlalchemy import Column, String, Float, DateTime
from checkout.database import Base
import uuid


def generate_id():
    return str(uuid.uuid4())


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=True, index=True)
    invoice_id = Column(String, nullable=True, index=True)
    amount = Column(Float, nullable=False)
    phone_number = Column(String, nullable=False)
    transaction_ref = Column(String, nullable=True, unique=True, index=True)  # CheckoutRequestID
    status = Column(String, nullable=False, default="pending")  # pending / completed / failed
    mpesa_receipt_number = Column(String, nullable=True)
    result_code = Column(String, nullable=True)
    result_desc = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=True, index=True)
    invoice_number = Column(String, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=True, default="KES")
    description = Column(String, nullable=True)
    status = Column(String, nullable=True, default="pending")  # pending / paid / cancelled
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=True)


class PaymentLink(Base):
    __tablename__ = "payment_links"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    method_type = Column(String, nullable=False)  # mpesa_paybill / mpesa_till / bank
    method_value = Column(String, nullable=False)
    min_amount = Column(Float, nullable=False, default=1.0)
    currency = Column(String(3), nullable=False, default="KES")
    link_slug = Column(String, nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, nullable=True)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, nullable=False, index=True)
    plan_name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="KES")
    status = Column(String, nullable=False, default="pending")  # pending / active / failed
    payment_method = Column(String, nullable=True)
    checkout_request_id = Column(String, nullable=True, unique=True, index=True)
    merchant_request_id = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=True)
