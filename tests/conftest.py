"""
Shared pytest fixtures for all test modules.

Uses an in-memory SQLite database (StaticPool) so every test
function gets a clean, isolated store.
Time is faked: FakeClock.sleep advances the clock instead of waiting, so a
two-minute polling deadline runs in a few event-loop ticks.
"""
import asyncio
import pytest
import httpx
from datetime import datetime, timedelta
from typing import Optional, List
from unittest.mock import AsyncMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from checkout.database import Base
from checkout.dependencies import get_registry, get_store
from checkout.services.attempts import AttemptRegistry
from checkout.services.normalizer import ChargeResult
from checkout.services.store import PaymentStore
from checkout import models


# ---------------------------------------------------------------------------
# In-memory database engine shared across all fixtures in a test session.
# StaticPool forces all SQLAlchemy connections to reuse the same underlying
# sqlite3 connection, which is required for in-memory SQLite.
# ---------------------------------------------------------------------------
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE)


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedStore:
    """
    Stands in for PaymentStore in poller/registry tests.
    Read N returns statuses[N-1]; the last status repeats. None means "no row yet".
    """

    def __init__(self, statuses=None, receipt="SBX123ABC", result_desc=None, errors_on=()):
        self.statuses = list(statuses or [None])
        self.receipt = receipt
        self.result_desc = result_desc
        self.errors_on = set(errors_on)
        self.reads = 0
        self.sources = []
        self.references = []

    async def find_record(self, source, reference):
        self.reads += 1
        self.sources.append(source)
        self.references.append(reference)
        if self.reads in self.errors_on:
            raise ConnectionError("store unreachable")
        status = self.statuses[min(self.reads, len(self.statuses)) - 1]
        if status is None:
            return None
        return {
            "status": status,
            "amount": 1000.0,
            "phone_number": "254712345678",
            "mpesa_receipt_number": self.receipt if status in ("completed", "active") else None,
            "result_desc": self.result_desc,
        }


def accepted(reference: str, message: Optional[str] = None) -> ChargeResult:
    return ChargeResult(
        success=True,
        checkout_request_id=reference,
        raw_response={"success": True, "checkoutRequestId": reference},
        message=message,
    )


def rejected(error: str) -> ChargeResult:
    return ChargeResult(
        success=False,
        checkout_request_id=None,
        raw_response={"error": error},
        error=error,
    )


def mock_gateway(*results):
    """AsyncMock gateway returning the given ChargeResults in order (last one repeats)."""
    results = list(results) or [accepted("ws_CO_0001")]
    m = AsyncMock()

    async def initiate(request):
        index = min(m.initiate_charge.await_count, len(results)) - 1
        return results[index]

    m.initiate_charge = AsyncMock(side_effect=initiate)
    return m


def mock_gateways(invoice=None, link=None, subscription=None):
    return {
        "mpesa_invoice": invoice or mock_gateway(accepted("ws_CO_INV1")),
        "payment_link": link or mock_gateway(accepted("ws_CO_LNK1")),
        "subscription": subscription or mock_gateway(accepted("ws_CO_SUB1")),
    }


@pytest.fixture(autouse=True)
def reset_db():
    """Drop and recreate all tables before each test for full isolation."""
    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db(reset_db):
    """Yield a SQLAlchemy session backed by the in-memory test database."""
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(reset_db):
    return PaymentStore(TestingSession)


@pytest.fixture
def gateways():
    return mock_gateways()


@pytest.fixture
async def registry(store, gateways, clock):
    reg = AttemptRegistry(
        store,
        gateways,
        success_reset_seconds=None,
        clock=clock,
        sleep=clock.sleep,
    )
    yield reg
    await reg.shutdown()


@pytest.fixture
async def client(store, registry):
    """
    httpx AsyncClient bound to the real app (minus lifespan) with the store
    and registry dependencies overridden. Poll tasks spawned by requests run
    on the test's own event loop.
    """
    from checkout.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_registry] = lambda: registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers, not fixtures, so any test file can import and call them directly.
# ---------------------------------------------------------------------------
def make_invoice(
    db,
    invoice_id: str,
    amount: float = 1000.0,
    status: str = "pending",
    expires_at: Optional[datetime] = None,
    description: Optional[str] = None,
) -> models.Invoice:
    invoice = models.Invoice(
        id=invoice_id,
        user_id="merchant_1",
        invoice_number="INV-0001",
        customer_name="Amani Traders",
        amount=amount,
        currency="KES",
        description=description,
        status=status,
        expires_at=expires_at,
        created_at=datetime.utcnow() - timedelta(hours=1),
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


def make_link(
    db,
    slug: str,
    min_amount: float = 100.0,
    status: str = "active",
) -> models.PaymentLink:
    link = models.PaymentLink(
        user_id="merchant_1",
        title="Workshop ticket",
        method_type="mpesa_till",
        method_value="174379",
        min_amount=min_amount,
        currency="KES",
        link_slug=slug,
        status=status,
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def make_transaction(
    db,
    reference: str,
    status: str = "pending",
    amount: float = 1000.0,
    invoice_id: Optional[str] = None,
    receipt: Optional[str] = None,
    result_desc: Optional[str] = None,
) -> models.Transaction:
    txn = models.Transaction(
        invoice_id=invoice_id,
        amount=amount,
        phone_number="254712345678",
        transaction_ref=reference,
        status=status,
        mpesa_receipt_number=receipt,
        result_desc=result_desc,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn
