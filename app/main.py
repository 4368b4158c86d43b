"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import close_db
from app.logging_config import configure_logging
from app.services.webhook_guard import WebhookDeliveryGuard

from app.api.webhooks.paystack import router as paystack_router
from app.api.payments import router as payments_router
from app.api.tenant_portal import router as tenant_portal_router
from app.api.checkout import router as checkout_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    configure_logging()
    logging.info("Starting up Orca payments...")

    if not settings.paystack_secret_key:
        logging.warning("PAYSTACK_SECRET_KEY not set. Checkout and webhooks will fail until configured.")

    # Redis connects lazily; an unreachable server only disables redelivery short-circuiting
    app.state.webhook_guard = WebhookDeliveryGuard.from_url(
        settings.redis_url, ttl_seconds=settings.webhook_dedup_ttl_seconds
    )

    yield

    await app.state.webhook_guard.close()
    await close_db()
    logging.info("Shutting down...")


app = FastAPI(
    title="Orca",
    description="Property management rent collection via Paystack",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
    )


origins = [settings.app_base_url]
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(
    paystack_router,
    prefix="/webhooks",
    tags=["webhooks"],
)
app.include_router(
    payments_router,
    prefix="/payments",
    tags=["payments"],
)
app.include_router(
    tenant_portal_router,
    prefix="/tenant-portal",
    tags=["tenant-portal"],
)
app.include_router(
    checkout_router,
    tags=["checkout"],
)
