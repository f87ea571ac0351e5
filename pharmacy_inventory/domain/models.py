"""Inventory models: the embedded StockBatch and the Product / StockMovement tables."""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from pharmacy_inventory.domain.value_objects import BatchNumber


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StockBatch(BaseModel):
    """
    One received lot of a product, stored inside the product record.

    Business Rules:
    - quantity_received is the historical receipt and never changes
    - 0 <= quantity_remaining <= quantity_received
    - unit_cost and sale_price are fixed per lot (per-lot margin tracking)
    - a depleted batch is kept with quantity_remaining = 0
    """

    model_config = ConfigDict(extra="forbid")

    id: str
    batch_number: str
    expiration_date: date
    quantity_received: int = PydanticField(ge=0)
    quantity_remaining: int = PydanticField(ge=0)
    unit_cost: Decimal = PydanticField(ge=0)
    sale_price: Decimal = PydanticField(ge=0)
    received_date: date
    supplier_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("batch_number", mode="before")
    @classmethod
    def normalize_batch_number(cls, value: Any) -> str:
        return str(BatchNumber(value))

    @model_validator(mode="after")
    def check_remaining_within_received(self) -> "StockBatch":
        if self.quantity_remaining > self.quantity_received:
            raise ValueError(
                f"quantity_remaining ({self.quantity_remaining}) cannot exceed "
                f"quantity_received ({self.quantity_received})"
            )
        return self

    def is_available(self, today: date) -> bool:
        """Sellable: has units left and expires after ``today``."""
        return self.quantity_remaining > 0 and self.expiration_date > today

    def is_expired(self, today: date) -> bool:
        """Has units left but is past (or on) its expiration date."""
        return self.quantity_remaining > 0 and self.expiration_date <= today

    def to_document(self) -> dict[str, Any]:
        """Serialize for the product's JSON ``batches`` column."""
        return self.model_dump(mode="json")


class StockMovementType(str, enum.Enum):
    """Kinds of stock change recorded in the movement log."""

    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"


class Product(SQLModel, table=True):
    """
    A stocked product owning its batch list.

    Business Rules:
    - batches is the ordered (insertion order) list of StockBatch documents
      and is always rewritten as a whole
    - stock_quantity is derived: the sum of quantity_remaining over
      available batches, recomputed on every batch-list write
    - version is incremented on every batch-list write and guards the write
      (compare-and-swap) so concurrent writers cannot lose updates
    """

    __tablename__ = "products"

    # Primary Key
    id: Optional[int] = Field(default=None, primary_key=True)

    # Business Identifiers
    product_code: str = Field(
        unique=True,
        index=True,
        max_length=32,
        description="Unique product code",
    )
    product_name: str = Field(max_length=200, description="Display name")
    generic_name: Optional[str] = Field(default=None, max_length=200)
    supplier_id: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Default supplier for received batches",
    )

    # Stock
    reorder_level: int = Field(default=10, ge=0, description="Low-stock threshold")
    stock_quantity: int = Field(default=0, description="Derived available stock")
    batches: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Embedded stock batches",
    )

    # Concurrency Control
    version: int = Field(default=1, description="Version number for compare-and-swap writes")

    # Audit Trail
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def stock_batches(self) -> list[StockBatch]:
        """Parse the stored batch documents, preserving insertion order."""
        return [StockBatch.model_validate(document) for document in self.batches or []]


class StockMovement(SQLModel, table=True):
    """
    One stock change for a product.

    quantity is signed: positive for stock in (purchase, upward
    adjustment), negative for stock out (sale, downward adjustment).
    """

    __tablename__ = "stock_movements"

    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    batch_id: Optional[str] = Field(default=None, max_length=64, index=True)
    movement_type: StockMovementType = Field(index=True)
    quantity: int
    reason: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now, index=True)
