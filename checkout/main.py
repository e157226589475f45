import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from checkout.config import get_settings
from checkout.database import engine, SessionLocal, Base
from checkout import models
from checkout.gateways.functions import FunctionsClient
from checkout.gateways.mpesa_invoice import InvoiceStkGateway
from checkout.gateways.payment_link import PaymentLinkStkGateway
from checkout.gateways.subscription import SubscriptionMpesaGateway
from checkout.services.attempts import AttemptRegistry
from checkout.services.store import PaymentStore

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_registry(functions: FunctionsClient, store: PaymentStore) -> AttemptRegistry:
    gateways = [
        InvoiceStkGateway(functions),
        PaymentLinkStkGateway(functions),
        SubscriptionMpesaGateway(functions),
    ]
    return AttemptRegistry(
        store,
        {g.gateway_name: g for g in gateways},
        success_reset_seconds=settings.SUCCESS_RESET_SECONDS,
        retention_seconds=settings.ATTEMPT_RETENTION_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Local/dev only: the real store's schema is owned by the backend
    Base.metadata.create_all(bind=engine)
    if settings.SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            count = db.query(models.Invoice).count()
        finally:
            db.close()
        if count == 0:
            import subprocess
            import sys
            subprocess.run([sys.executable, "scripts/generate_test_data.py"], check=False)

    functions = FunctionsClient(
        settings.FUNCTIONS_URL,
        api_key=settings.FUNCTIONS_API_KEY,
        timeout=settings.FUNCTIONS_TIMEOUT_SECONDS,
    )
    app.state.store = PaymentStore(SessionLocal)
    app.state.registry = build_registry(functions, app.state.store)
    logger.info("Checkout service started; remote functions at %s", settings.FUNCTIONS_URL)
    yield
    await app.state.registry.shutdown()
    await functions.aclose()
    logger.info("Checkout service shutdown complete")


app = FastAPI(
    title="LipaSasa Checkout API",
    description="Initiates M-PESA charges for invoices, payment links and plan upgrades, "
                "and watches each one until the payment is confirmed, fails, or times out",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "lipasasa-checkout"}


from checkout.routers import attempts, invoices, payment_links, subscriptions  # noqa: E402
app.include_router(invoices.router, prefix="/api/v1/invoices", tags=["invoices"])
app.include_router(payment_links.router, prefix="/api/v1/payment-links", tags=["payment-links"])
app.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["subscriptions"])
app.include_router(attempts.router, prefix="/api/v1/attempts", tags=["attempts"])
