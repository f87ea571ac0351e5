"""Domain value objects for type-safe inventory concepts."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

BATCH_NUMBER_MAX_LENGTH = 50


@dataclass(frozen=True)
class BatchNumber:
    """
    Immutable value object for a supplier lot code.

    Lot codes are free-form, so only surrounding whitespace is stripped and
    the result must be non-empty and at most 50 characters. Uniqueness is
    not enforced: two products may carry the same lot code.
    """

    value: str

    def __post_init__(self) -> None:
        normalized = self.value.strip() if isinstance(self.value, str) else ""
        if not normalized:
            raise ValueError("Batch number cannot be empty")
        if len(normalized) > BATCH_NUMBER_MAX_LENGTH:
            raise ValueError(
                f"Batch number longer than {BATCH_NUMBER_MAX_LENGTH} characters: '{normalized}'"
            )
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value


class StockStatus(str, enum.Enum):
    """Shelf status of a product derived from its available stock."""

    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"


@dataclass(frozen=True)
class AllocationLine:
    """Units taken from one batch by an allocation."""

    batch_id: str
    batch_number: str
    quantity: int
    unit_cost: Decimal
    sale_price: Decimal
    expiration_date: date

    @property
    def cost(self) -> Decimal:
        return self.unit_cost * self.quantity

    @property
    def revenue(self) -> Decimal:
        return self.sale_price * self.quantity


@dataclass(frozen=True)
class AllocationPlan:
    """Successful FIFO allocation: the batches to draw from, in order."""

    lines: tuple[AllocationLine, ...]

    success = True

    @property
    def quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total_cost(self) -> Decimal:
        return sum((line.cost for line in self.lines), Decimal("0"))

    @property
    def total_revenue(self) -> Decimal:
        return sum((line.revenue for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class Shortage:
    """Failed allocation: not enough sellable units to cover the request."""

    requested: int
    available: int

    success = False

    @property
    def shortage(self) -> int:
        return self.requested - self.available


AllocationResult = Union[AllocationPlan, Shortage]
