"""
Read-only access to the transaction store.

The store is owned by the backend: rows are written by the charge-initiation
functions and flipped to a terminal status by the gateway callbacks. This
layer only observes them. Every read opens its own session from the injected
factory, so the poller never holds on to a request-scoped session.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from checkout import models


def _naive_utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def invoice_to_dict(invoice: models.Invoice) -> Dict[str, Any]:
    now = _naive_utcnow()
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer_name": invoice.customer_name,
        "amount": invoice.amount,
        "currency": invoice.currency or "KES",
        "description": invoice.description,
        "status": invoice.status or "pending",
        "expires_at": invoice.expires_at,
        "is_paid": invoice.status == "paid",
        "is_expired": invoice.expires_at is not None and invoice.expires_at < now,
    }


def payment_link_to_dict(link: models.PaymentLink) -> Dict[str, Any]:
    return {
        "id": link.id,
        "title": link.title,
        "description": link.description,
        "method_type": link.method_type,
        "method_value": link.method_value,
        "min_amount": link.min_amount,
        "currency": link.currency,
        "link_slug": link.link_slug,
        "status": link.status,
    }


class PaymentStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def _run(self, query: Callable[[Session], Optional[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            return query(db)
        finally:
            db.close()

    async def _read(self, query: Callable[[Session], Optional[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
        # Session work blocks; keep it off the event loop the poll tasks share
        return await run_in_threadpool(self._run, query)

    async def find_transaction(self, reference: str) -> Optional[Dict[str, Any]]:
        """Single-record lookup by transaction_ref (the CheckoutRequestID)."""
        def query(db):
            txn = db.query(models.Transaction).filter(
                models.Transaction.transaction_ref == reference
            ).first()
            if txn is None:
                return None
            return {
                "status": txn.status,
                "amount": txn.amount,
                "phone_number": txn.phone_number,
                "mpesa_receipt_number": txn.mpesa_receipt_number,
                "result_desc": txn.result_desc,
            }
        return await self._read(query)

    async def find_subscription(self, reference: str) -> Optional[Dict[str, Any]]:
        def query(db):
            sub = db.query(models.Subscription).filter(
                models.Subscription.checkout_request_id == reference
            ).first()
            if sub is None:
                return None
            return {
                "status": sub.status,
                "amount": sub.amount,
                "phone_number": sub.phone_number,
                "mpesa_receipt_number": None,
                "result_desc": None,
            }
        return await self._read(query)

    async def find_record(self, source: str, reference: str) -> Optional[Dict[str, Any]]:
        if source == "transactions":
            return await self.find_transaction(reference)
        if source == "subscriptions":
            return await self.find_subscription(reference)
        raise ValueError(f"Unknown record source: {source}")

    async def get_invoice(self, invoice_id: str) -> Optional[Dict[str, Any]]:
        def query(db):
            invoice = db.query(models.Invoice).filter(models.Invoice.id == invoice_id).first()
            return invoice_to_dict(invoice) if invoice else None
        return await self._read(query)

    async def get_payment_link(self, slug: str) -> Optional[Dict[str, Any]]:
        """Only active links are payable; disabled ones read as missing."""
        def query(db):
            link = db.query(models.PaymentLink).filter(
                models.PaymentLink.link_slug == slug,
                models.PaymentLink.status == "active",
            ).first()
            return payment_link_to_dict(link) if link else None
        return await self._read(query)
