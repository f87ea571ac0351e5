"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from pharmacy_inventory.api.v1.router import router as api_v1_router
from pharmacy_inventory.config import settings
from pharmacy_inventory.logging_config import configure_logging
from pharmacy_inventory.middleware import CorrelationIdMiddleware


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """Configure application resources on startup."""
    configure_logging(log_level=settings.log_level)
    yield


app = FastAPI(
    title="Pharmacy Batch Inventory API",
    description="Batch-level pharmacy stock with FIFO (earliest-expiry-first) allocation",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(api_v1_router)


@app.get("/health", tags=["health"])
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
