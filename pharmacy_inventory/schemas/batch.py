"""Pydantic schemas for batch API requests and responses."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class BatchCreateRequest(BaseModel):
    """Request schema for receiving a batch."""

    batch_number: str = Field(
        min_length=1,
        max_length=50,
        description="Supplier lot code",
        examples=["LOT-2026-0415"],
    )
    expiration_date: date = Field(description="Last day the lot may be stored")
    quantity_received: int = Field(gt=0, description="Units received")
    quantity_remaining: int | None = Field(
        default=None,
        ge=0,
        description="Units still on hand (defaults to quantity_received)",
    )
    unit_cost: Decimal = Field(ge=0, decimal_places=2, description="Purchase cost per unit")
    sale_price: Decimal = Field(ge=0, decimal_places=2, description="Sale price per unit")
    received_date: date | None = Field(default=None, description="Defaults to today")
    supplier_id: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=500)


class BatchUpdateRequest(BaseModel):
    """Request schema for correcting a batch; only fields that are sent change."""

    batch_number: str | None = Field(default=None, min_length=1, max_length=50)
    expiration_date: date | None = None
    quantity_remaining: int | None = Field(default=None, ge=0)
    unit_cost: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    sale_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    notes: str | None = Field(default=None, max_length=500)


class BatchResponse(BaseModel):
    """Response schema for batch details."""

    id: str
    batch_number: str
    expiration_date: date
    quantity_received: int
    quantity_remaining: int
    unit_cost: Decimal
    sale_price: Decimal
    received_date: date
    supplier_id: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BatchSummary(BaseModel):
    """Totals over a product's batches."""

    total_available: int
    total_expired: int
    batch_count: int
    inventory_value: Decimal


class BatchListResponse(BaseModel):
    """Response schema for a product's available and expired batches."""

    product_id: int
    available_batches: list[BatchResponse]
    expired_batches: list[BatchResponse]
    summary: BatchSummary
