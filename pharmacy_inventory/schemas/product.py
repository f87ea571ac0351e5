"""Pydantic schemas for product API requests and responses."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from pharmacy_inventory.domain.ledger import InventoryLedger
from pharmacy_inventory.domain.models import Product
from pharmacy_inventory.domain.value_objects import StockStatus


class ProductCreateRequest(BaseModel):
    """Request schema for creating a product."""

    product_code: str | None = Field(
        default=None,
        min_length=1,
        max_length=32,
        description="Unique product code (generated when omitted)",
        examples=["P1042"],
    )
    product_name: str = Field(min_length=1, max_length=200, examples=["Amoxicillin 500mg"])
    generic_name: str | None = Field(default=None, max_length=200)
    supplier_id: str | None = Field(
        default=None,
        max_length=64,
        description="Default supplier for received batches",
    )
    reorder_level: int | None = Field(
        default=None,
        ge=0,
        description="Low-stock threshold (defaults to the configured level)",
    )


class ProductUpdateRequest(BaseModel):
    """Request schema for changing a product; only fields that are sent change."""

    product_name: str | None = Field(default=None, min_length=1, max_length=200)
    generic_name: str | None = Field(default=None, max_length=200)
    supplier_id: str | None = Field(default=None, max_length=64)
    reorder_level: int | None = Field(default=None, ge=0)


class ProductResponse(BaseModel):
    """Response schema for product details with stock figures."""

    id: int
    product_code: str
    product_name: str
    generic_name: str | None
    supplier_id: str | None
    reorder_level: int
    stock_quantity: int
    available_stock: int
    current_price: Decimal | None
    stock_status: StockStatus
    is_low_stock: bool
    earliest_expiry: date | None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_product(cls, product: Product, today: date) -> "ProductResponse":
        ledger = InventoryLedger.for_product(product)
        available = ledger.available_batches(today)
        return cls(
            id=product.id,  # type: ignore[arg-type]
            product_code=product.product_code,
            product_name=product.product_name,
            generic_name=product.generic_name,
            supplier_id=product.supplier_id,
            reorder_level=product.reorder_level,
            stock_quantity=product.stock_quantity,
            available_stock=ledger.available_stock(today),
            current_price=ledger.current_price(today),
            stock_status=ledger.stock_status(today),
            is_low_stock=ledger.is_low_stock(today),
            earliest_expiry=available[0].expiration_date if available else None,
            version=product.version,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductListResponse(BaseModel):
    """Response schema for product list."""

    products: list[ProductResponse]
    total: int
