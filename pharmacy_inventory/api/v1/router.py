"""Main router aggregator for API v1."""

from fastapi import APIRouter

from pharmacy_inventory.api.v1.products import router as products_router
from pharmacy_inventory.api.v1.stock import router as stock_router

router = APIRouter(prefix="/api")

router.include_router(products_router)
router.include_router(stock_router)
