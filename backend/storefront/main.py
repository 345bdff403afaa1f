import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.errors import register_exception_handlers
from storefront.api.health import router as health_router
from storefront.api.routes_admin import router as admin_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_checkout import router as checkout_router
from storefront.api.routes_inventory import router as inventory_router
from storefront.api.routes_order import router as order_router
from storefront.api.routes_webhooks import router as webhooks_router
from storefront.config import settings
from storefront.container import get_container, reset_container
from storefront.db import SessionLocal, init_db
from storefront.services.checkout_service import CheckoutService
from storefront.utils.logging import configure_logging

log = logging.getLogger("storefront.main")


def expire_sessions_job():
    db = SessionLocal()
    try:
        container = get_container()
        CheckoutService(db, container.payment_gateway, container.tax_calculator).expire_overdue()
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    configure_logging(settings.LOG_LEVEL)
    init_db()
    get_container()

    scheduler = None
    if settings.SESSION_SWEEP_SECONDS > 0:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            expire_sessions_job,
            "interval",
            seconds=settings.SESSION_SWEEP_SECONDS,
            id="expire_checkout_sessions",
        )
        scheduler.start()
        log.info("checkout session sweep every %ss", settings.SESSION_SWEEP_SECONDS)

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        reset_container()


app = FastAPI(title="Storefront - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(cart_router, tags=["cart"])

app.include_router(checkout_router, tags=["checkout"])

app.include_router(webhooks_router, tags=["webhooks"])

app.include_router(order_router, tags=["orders"])

app.include_router(inventory_router, tags=["inventory"])

app.include_router(admin_router, tags=["admin"])
