# jgpnr/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from jgpnr.api.v1.api import api_router
from jgpnr.core.config import settings
from jgpnr.core.exceptions import TicketingError
from jgpnr.core.kafka_producer import close_kafka_singleton
from jgpnr.core.limiter import limiter
from jgpnr.db.session import SessionLocal
from jgpnr.scheduler import get_scheduler_status, init_scheduler, shutdown_scheduler
from jgpnr.services.ticket_management.qr_crypto import QRCipher
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")

    # Refuses to start with a missing or weak QR key
    app.state.qr_cipher = QRCipher(settings.QR_ENCRYPTION_KEY)

    provider = TicketSettingsProvider()
    db = SessionLocal()
    try:
        provider.load(db)
    finally:
        db.close()
    app.state.settings_provider = provider

    if settings.ENABLE_SCHEDULER:
        init_scheduler()

    yield

    logger.info("Application shutting down...")
    if settings.ENABLE_SCHEDULER:
        shutdown_scheduler()
    close_kafka_singleton()


app = FastAPI(
    title="JGPNR Ticketing Service",
    version="1.0.0",
    description="""
        **JGPNR Paintball ticketing backend**

        * **Orders**: create orders with tickets, confirm payments, cancel and refund
        * **Tickets**: QR validation and gate scanning with per-ticket scan limits
        * **Payments**: Paystack checkout, verification and webhooks
        * **Settings**: venue-wide scan policy

        Most endpoints require JWT authentication via the `Authorization: Bearer <token>` header.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TicketingError)
async def ticketing_error_handler(request: Request, exc: TicketingError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    content = {"detail": exc.detail}
    if exc.retryable:
        content["retryable"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "JGPNR Ticketing Service is running"}


@app.get("/health")
def health():
    return {"status": "ok", "scheduler": get_scheduler_status()}
