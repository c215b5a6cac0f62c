"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from storefront.core.logging import setup_logging
from storefront.db.database import init_db
from storefront.api import addresses, auth, cart, checkout, health, invoices, orders


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="Storefront API",
    description="Cart, address book, checkout and back-office order intake",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(auth.router, tags=["auth"])
app.include_router(cart.router, tags=["cart"])
app.include_router(addresses.router, tags=["addresses"])
app.include_router(checkout.router, tags=["checkout"])
app.include_router(orders.router, tags=["orders"])
app.include_router(invoices.router, tags=["invoices"])


@app.get("/")
async def root():
    return {"message": "Storefront API", "version": "0.1.0"}
