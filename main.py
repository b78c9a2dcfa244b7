# src/main.py
import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from auth.routes import router as auth_router  # noqa: E402
from content.routes import router as content_router  # noqa: E402
from subscription.routes import router as subscription_router  # noqa: E402
from payment.routes import router as payment_router  # noqa: E402
from admin.routes import router as admin_router  # noqa: E402
from webhooks.routes import router as webhook_router  # noqa: E402
from database import init_db  # noqa: E402
from errors import AppError, app_error_handler  # noqa: E402
from scheduler.tasks import start_scheduler  # noqa: E402

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Subscription Payments Backend",
    description="Payment confirmation and protected content delivery",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)

# Include routers
app.include_router(auth_router)
app.include_router(content_router)
app.include_router(subscription_router)
app.include_router(payment_router)
app.include_router(webhook_router)
app.include_router(admin_router)


@app.on_event("startup")
async def startup_event():
    """Run initial tasks on startup."""
    init_db()
    if not settings.PAYMENT_WEBHOOK_SECRET:
        logger.error("PAYMENT_WEBHOOK_SECRET is not set: every payment notification will be rejected")
    if settings.SCHEDULER_ENABLED:
        start_scheduler()


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
