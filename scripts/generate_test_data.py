"""
Seeds a local SQLite store with demo records for the checkout API.

- 20 invoices: mostly unpaid, a few paid (with a completed transaction), a few expired
- 6 payment links: 5 active, 1 disabled
- Amounts in KES, payer phones across the accepted country codes (254/255/256/250)

Records are only read by the service; flip a transaction's status by hand to
simulate the gateway callback while a payment attempt is being watched.
"""
import sys
import os
import random
import uuid
from datetime import datetime, timedelta

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from checkout.database import engine, SessionLocal
from checkout import models

random.seed(42)

MERCHANT_ID = "merchant_demo"
CUSTOMERS = ["Amani Traders", "Baraka Hardware", "Cheza Studio", "Duka Fresh", "Eneo Logistics"]
COUNTRY_CODES = ["254", "255", "256", "250"]

NOW = datetime.utcnow()


def random_phone():
    return random.choice(COUNTRY_CODES) + "7" + "".join(random.choice("0123456789") for _ in range(8))


def make_invoice(number, status="pending", expires_at=None):
    amount = float(random.choice([500, 1000, 2500, 4999, 12000]))
    return models.Invoice(
        id=str(uuid.uuid4()),
        user_id=MERCHANT_ID,
        invoice_number=f"INV-{number:04d}",
        customer_name=random.choice(CUSTOMERS),
        amount=amount,
        currency="KES",
        description=None if number % 3 == 0 else f"Order #{1000 + number}",
        status=status,
        expires_at=expires_at,
        created_at=NOW - timedelta(days=random.randint(0, 20)),
    )


def make_completed_transaction(invoice):
    return models.Transaction(
        id=str(uuid.uuid4()),
        user_id=MERCHANT_ID,
        invoice_id=invoice.id,
        amount=invoice.amount,
        phone_number=random_phone(),
        transaction_ref=f"ws_CO_{uuid.uuid4().hex[:20]}",
        status="completed",
        mpesa_receipt_number=f"S{uuid.uuid4().hex[:9].upper()}",
        result_code="0",
        result_desc="The service request is processed successfully.",
        created_at=invoice.created_at,
        updated_at=invoice.created_at,
    )


def generate_records():
    records = []

    for n in range(1, 21):
        if n % 5 == 0:
            invoice = make_invoice(n, status="paid")
            records.append(invoice)
            records.append(make_completed_transaction(invoice))
        elif n % 7 == 0:
            records.append(make_invoice(n, expires_at=NOW - timedelta(days=1)))
        else:
            records.append(make_invoice(n, expires_at=NOW + timedelta(days=14)))

    links = [
        ("Donations", "donate", "mpesa_paybill", "522522", 10),
        ("Workshop ticket", "workshop-2024", "mpesa_till", "891300", 1500),
        ("Consulting deposit", "consult", "mpesa_paybill", "400200", 5000),
        ("Tip jar", "tips", "mpesa_till", "174379", 50),
        ("Bank transfer", "bank-pay", "bank", "0110234567890", 1000),
    ]
    for title, slug, method_type, method_value, min_amount in links:
        records.append(models.PaymentLink(
            id=str(uuid.uuid4()),
            user_id=MERCHANT_ID,
            title=title,
            method_type=method_type,
            method_value=method_value,
            min_amount=float(min_amount),
            currency="KES",
            link_slug=slug,
            status="active",
            created_at=NOW,
        ))
    records.append(models.PaymentLink(
        id=str(uuid.uuid4()),
        user_id=MERCHANT_ID,
        title="Old promo",
        method_type="mpesa_till",
        method_value="174379",
        min_amount=100.0,
        currency="KES",
        link_slug="old-promo",
        status="disabled",
        created_at=NOW - timedelta(days=90),
    ))

    return records


def main():
    print("Creating database tables...")
    models.Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        existing = db.query(models.Invoice).count()
        if existing > 0:
            print(f"Database already has {existing} invoices. Skipping seed.")
            return

        print("Generating demo records...")
        db.add_all(generate_records())
        db.commit()

        from sqlalchemy import func as sqlfunc
        statuses = db.query(
            models.Invoice.status,
            sqlfunc.count(models.Invoice.id)
        ).group_by(models.Invoice.status).all()
        print("\nInvoice status distribution:")
        for status, cnt in statuses:
            print(f"  {status}: {cnt}")

        links = db.query(models.PaymentLink).order_by(models.PaymentLink.link_slug).all()
        print("\nPayment links:")
        for link in links:
            print(f"  /{link.link_slug} ({link.status}, min {link.currency} {link.min_amount:g})")

    finally:
        db.close()


if __name__ == "__main__":
    main()
