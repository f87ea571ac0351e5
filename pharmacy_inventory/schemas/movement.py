"""Pydantic schemas for stock movement responses."""

from datetime import datetime, timezone

from pydantic import AwareDatetime, BaseModel, field_validator

from pharmacy_inventory.domain.models import StockMovementType


class StockMovementResponse(BaseModel):
    """Response schema for a stock movement."""

    id: int
    product_id: int
    batch_id: str | None
    movement_type: StockMovementType
    quantity: int
    reason: str | None
    notes: str | None
    created_at: AwareDatetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_timezone_aware(cls, value: datetime) -> datetime:
        """Ensure datetime has timezone info, defaulting to UTC if naive."""
        if value and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class StockMovementListResponse(BaseModel):
    """Response schema for a product's movement log."""

    movements: list[StockMovementResponse]
    total: int
