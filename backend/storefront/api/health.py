import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.api.deps import container_dep
from storefront.container import Container
from storefront.db import engine

log = logging.getLogger("storefront.health")

router = APIRouter()


@router.get("/health", tags=["health"])
def health(container: Container = Depends(container_dep)):
    db_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except SQLAlchemyError:
        log.exception("database health check failed")

    payment = container.payment_gateway.health_check()
    payment_ok = payment.get("status") == "ok"

    return {
        "status": "ok" if db_ok and payment_ok else "degraded",
        "db": db_ok,
        "payment_gateway": payment,
    }
