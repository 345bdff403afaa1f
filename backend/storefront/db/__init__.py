import importlib
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings

log = logging.getLogger("storefront.db")

DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # sessions are handed between FastAPI's threadpool workers
    connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# every module that declares tables; imported before create_all so metadata is complete
MODEL_MODULES = [
    "storefront.models.product",
    "storefront.models.inventory",
    "storefront.models.supplier",
    "storefront.models.cart",
    "storefront.models.cart_item",
    "storefront.models.discount",
    "storefront.models.checkout_session",
    "storefront.models.order",
    "storefront.models.inventory_shortfall",
    "storefront.models.dropship_order",
    "storefront.models.cart_activity",
]


def import_models():
    for mod in MODEL_MODULES:
        importlib.import_module(mod)


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    With reset=True (or RESET_DB set) all tables are dropped and recreated,
    which is what the test-suite and throwaway dev databases want. Otherwise
    existing tables are left in place and only missing ones are created.
    """
    import_models()
    if reset or settings.RESET_DB:
        log.info("Resetting database schema")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.info("Database initialized (%s tables)", len(Base.metadata.tables))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
