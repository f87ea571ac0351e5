"""Per-product inventory ledger: FIFO queries, allocation and batch mutations.

The ledger works on an in-memory copy of a product's batch list and never
touches the database. Callers load a product, run one mutation on its ledger
and persist ``ledger.batches`` together with ``ledger.stock_quantity(today)``
as a single write.

Time is always passed in: queries take ``today`` and mutations take ``now``
(whose UTC date is used as ``today``). A batch is sellable until the day
before its expiration date.
"""

import uuid
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from pharmacy_inventory.domain.exceptions import (
    BatchNotFoundError,
    BatchValidationError,
    InsufficientStockError,
    InvalidQuantityError,
    LedgerIntegrityError,
)
from pharmacy_inventory.domain.models import Product, StockBatch
from pharmacy_inventory.domain.value_objects import (
    AllocationLine,
    AllocationPlan,
    AllocationResult,
    Shortage,
    StockStatus,
)

REQUIRED_BATCH_FIELDS = (
    "batch_number",
    "expiration_date",
    "quantity_received",
    "unit_cost",
    "sale_price",
)
OPTIONAL_BATCH_FIELDS = ("quantity_remaining", "received_date", "supplier_id", "notes")
UPDATABLE_BATCH_FIELDS = frozenset(
    {"batch_number", "expiration_date", "quantity_remaining", "unit_cost", "sale_price", "notes"}
)


def _validation_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "batch"
        errors[field] = error["msg"]
    return errors


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


class InventoryLedger:
    """Batch state of one product with consistent stock arithmetic."""

    def __init__(
        self,
        batches: list[StockBatch],
        reorder_level: int = 0,
        default_supplier_id: Optional[str] = None,
    ):
        self._batches = list(batches)
        self.reorder_level = reorder_level
        self.default_supplier_id = default_supplier_id

    @classmethod
    def for_product(cls, product: Product) -> "InventoryLedger":
        """Build a ledger over a copy of the product's stored batches."""
        return cls(
            product.stock_batches(),
            reorder_level=product.reorder_level,
            default_supplier_id=product.supplier_id,
        )

    @property
    def batches(self) -> list[StockBatch]:
        """All batches in insertion order, including depleted and expired ones."""
        return list(self._batches)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def get_batch(self, batch_id: str) -> StockBatch:
        for batch in self._batches:
            if batch.id == batch_id:
                return batch
        raise BatchNotFoundError(batch_id=batch_id)

    def available_batches(self, today: date) -> list[StockBatch]:
        """
        Sellable batches in FIFO order.

        Sorted by expiration_date; batches expiring the same day are ordered
        by received_date, then by their position in the batch list.
        """
        available = [batch for batch in self._batches if batch.is_available(today)]
        return sorted(available, key=lambda b: (b.expiration_date, b.received_date))

    def expired_batches(self, today: date) -> list[StockBatch]:
        """Batches that still hold units but can no longer be sold."""
        return [batch for batch in self._batches if batch.is_expired(today)]

    def expiring_batches(self, today: date, days: int) -> list[StockBatch]:
        """Sellable batches whose expiration falls within the next ``days`` days."""
        horizon = today + timedelta(days=days)
        return [b for b in self.available_batches(today) if b.expiration_date <= horizon]

    def available_stock(self, today: date) -> int:
        return sum(batch.quantity_remaining for batch in self.available_batches(today))

    def stock_quantity(self, today: date) -> int:
        """Value stored as Product.stock_quantity; always recomputed, never adjusted."""
        return self.available_stock(today)

    def is_low_stock(self, today: date) -> bool:
        return self.available_stock(today) <= self.reorder_level

    def can_fulfill(self, quantity: int, today: date) -> bool:
        return self.available_stock(today) >= quantity

    def stock_status(self, today: date) -> StockStatus:
        if self.available_stock(today) <= 0:
            return StockStatus.OUT_OF_STOCK
        if self.is_low_stock(today):
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    def inventory_value(self, today: date) -> Decimal:
        """Cost value of sellable stock."""
        return sum(
            (b.unit_cost * b.quantity_remaining for b in self.available_batches(today)),
            Decimal("0"),
        )

    def current_price(self, today: date) -> Optional[Decimal]:
        """Sale price of the next unit to be sold, or None when nothing is sellable."""
        available = self.available_batches(today)
        return available[0].sale_price if available else None

    def allocate(self, quantity: int, today: date) -> AllocationResult:
        """
        Plan a FIFO draw of ``quantity`` units without changing any batch.

        Returns:
            AllocationPlan listing the batches to draw from, or Shortage when
            available stock cannot cover the request.

        Raises:
            InvalidQuantityError: quantity is not a positive integer
        """
        _check_quantity(quantity)
        available = self.available_batches(today)
        total_available = sum(batch.quantity_remaining for batch in available)

        if total_available < quantity:
            return Shortage(requested=quantity, available=total_available)

        lines: list[AllocationLine] = []
        remaining = quantity
        for batch in available:
            if remaining <= 0:
                break
            taken = min(remaining, batch.quantity_remaining)
            lines.append(
                AllocationLine(
                    batch_id=batch.id,
                    batch_number=batch.batch_number,
                    quantity=taken,
                    unit_cost=batch.unit_cost,
                    sale_price=batch.sale_price,
                    expiration_date=batch.expiration_date,
                )
            )
            remaining -= taken

        return AllocationPlan(lines=tuple(lines))

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    def reduce_stock(self, quantity: int, now: datetime) -> list[AllocationLine]:
        """
        Consume ``quantity`` units FIFO.

        Either every planned line is applied or nothing changes.

        Raises:
            InvalidQuantityError: quantity is not a positive integer
            InsufficientStockError: available stock is below quantity
            LedgerIntegrityError: the plan names a batch missing from the list
        """
        result = self.allocate(quantity, now.date())
        if isinstance(result, Shortage):
            raise InsufficientStockError(requested=result.requested, available=result.available)

        positions = {batch.id: index for index, batch in enumerate(self._batches)}
        missing = [line.batch_id for line in result.lines if line.batch_id not in positions]
        if missing:
            raise LedgerIntegrityError(missing_batch_ids=missing)

        for line in result.lines:
            index = positions[line.batch_id]
            batch = self._batches[index]
            self._batches[index] = batch.model_copy(
                update={
                    "quantity_remaining": batch.quantity_remaining - line.quantity,
                    "updated_at": now,
                }
            )

        return list(result.lines)

    def add_batch(self, data: Mapping[str, Any], now: datetime) -> StockBatch:
        """
        Receive a new batch and append it to the batch list.

        quantity_remaining defaults to quantity_received, received_date to
        today and supplier_id to the product's supplier.

        Raises:
            BatchValidationError: required fields missing or values invalid
        """
        missing = {
            field: "field required" for field in REQUIRED_BATCH_FIELDS if data.get(field) is None
        }
        unknown = {
            field: "unknown field"
            for field in data
            if field not in REQUIRED_BATCH_FIELDS and field not in OPTIONAL_BATCH_FIELDS
        }
        if missing or unknown:
            raise BatchValidationError({**missing, **unknown})

        document: dict[str, Any] = {field: data[field] for field in REQUIRED_BATCH_FIELDS}
        quantity_remaining = data.get("quantity_remaining")
        received_date = data.get("received_date")
        supplier_id = data.get("supplier_id")
        document.update(
            id=uuid.uuid4().hex,
            quantity_remaining=(
                quantity_remaining if quantity_remaining is not None else data["quantity_received"]
            ),
            received_date=received_date if received_date is not None else now.date(),
            supplier_id=supplier_id if supplier_id is not None else self.default_supplier_id,
            notes=data.get("notes"),
            created_at=now,
            updated_at=now,
        )

        try:
            batch = StockBatch.model_validate(document)
        except ValidationError as exc:
            raise BatchValidationError(_validation_errors(exc)) from exc

        self._batches.append(batch)
        return batch

    def update_batch(self, batch_id: str, data: Mapping[str, Any], now: datetime) -> StockBatch:
        """
        Apply a partial correction to one batch; only the given keys change.

        Raises:
            BatchNotFoundError: batch_id is not in the batch list
            BatchValidationError: a non-updatable field was given or the
                merged batch breaks the batch rules
        """
        index = next(
            (i for i, batch in enumerate(self._batches) if batch.id == batch_id),
            None,
        )
        if index is None:
            raise BatchNotFoundError(batch_id=batch_id)

        rejected = {
            field: "field cannot be updated"
            for field in data
            if field not in UPDATABLE_BATCH_FIELDS
        }
        if rejected:
            raise BatchValidationError(rejected)

        merged = {**self._batches[index].model_dump(), **dict(data), "updated_at": now}
        try:
            updated = StockBatch.model_validate(merged)
        except ValidationError as exc:
            raise BatchValidationError(_validation_errors(exc)) from exc

        self._batches[index] = updated
        return updated
