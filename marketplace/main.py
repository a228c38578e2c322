# marketplace/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from marketplace.data.database import Base, engine
from marketplace.api.errors import register_error_handlers
from marketplace.api.routers import cart, health, orders, payments, users, vendor
from marketplace.utils.settings import AUTO_CREATE_TABLES
from marketplace.utils.logging import get_logger

# IMPORT WSZYSTKICH MODELI (PRZED JAKIMKOLWIEK CREATE_ALL)
import marketplace.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db() -> None:
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_TABLES:
        init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Orders Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    register_error_handlers(app)

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(vendor.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
