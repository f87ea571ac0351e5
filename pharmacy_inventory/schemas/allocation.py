"""Pydantic schemas for allocation and stock reduction."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from pharmacy_inventory.domain.value_objects import (
    AllocationLine,
    AllocationResult,
    Shortage,
)


class AllocationRequest(BaseModel):
    """Request schema for previewing a FIFO allocation."""

    quantity: int = Field(gt=0, description="Units to allocate")


class ReduceStockRequest(BaseModel):
    """Request schema for consuming stock."""

    quantity: int = Field(gt=0, description="Units to remove")
    reason: str = Field(
        default="sale",
        min_length=1,
        max_length=100,
        description="Why stock leaves (sale, pos_sale, order_reservation, ...)",
    )
    notes: str | None = Field(default=None, max_length=500)


class AllocationLineResponse(BaseModel):
    """Units drawn from one batch."""

    batch_id: str
    batch_number: str
    quantity: int
    unit_cost: Decimal
    sale_price: Decimal
    expiration_date: date

    @classmethod
    def from_line(cls, line: AllocationLine) -> "AllocationLineResponse":
        return cls(
            batch_id=line.batch_id,
            batch_number=line.batch_number,
            quantity=line.quantity,
            unit_cost=line.unit_cost,
            sale_price=line.sale_price,
            expiration_date=line.expiration_date,
        )


class AllocationResponse(BaseModel):
    """
    Response schema for an allocation preview.

    ``success`` is false when stock cannot cover the request; ``shortage``
    and ``available`` then describe the gap and ``batches`` is empty.
    """

    success: bool
    requested: int
    available: int | None = None
    shortage: int | None = None
    batches: list[AllocationLineResponse] = []
    total_cost: Decimal | None = None
    total_revenue: Decimal | None = None

    @classmethod
    def from_result(cls, requested: int, result: AllocationResult) -> "AllocationResponse":
        if isinstance(result, Shortage):
            return cls(
                success=False,
                requested=requested,
                available=result.available,
                shortage=result.shortage,
            )
        return cls(
            success=True,
            requested=requested,
            batches=[AllocationLineResponse.from_line(line) for line in result.lines],
            total_cost=result.total_cost,
            total_revenue=result.total_revenue,
        )


class ReduceStockResponse(BaseModel):
    """Response schema for a completed stock reduction."""

    product_id: int
    quantity: int
    reason: str
    batches_used: list[AllocationLineResponse]
    stock_quantity: int
