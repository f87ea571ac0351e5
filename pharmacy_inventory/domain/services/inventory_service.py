"""Business logic layer for product stock operations."""

import logging
import random
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from itertools import islice
from typing import Any, List, Optional, TypeVar

from sqlmodel import Session

from pharmacy_inventory.config import settings
from pharmacy_inventory.domain.exceptions import (
    InventoryError,
    LedgerIntegrityError,
    ProductHasStockError,
    ProductValidationError,
)
from pharmacy_inventory.domain.ledger import InventoryLedger
from pharmacy_inventory.domain.models import (
    Product,
    StockBatch,
    StockMovement,
    StockMovementType,
)
from pharmacy_inventory.domain.value_objects import (
    AllocationLine,
    AllocationResult,
    StockStatus,
)
from pharmacy_inventory.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]

UPDATABLE_PRODUCT_FIELDS = frozenset(
    {"product_name", "generic_name", "supplier_id", "reorder_level"}
)
REQUIRED_PRODUCT_FIELDS = frozenset({"product_name", "reorder_level"})


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


def generate_product_code(exists: Callable[[str], bool]) -> str:
    """Random ``P`` + four-digit code not yet taken."""
    while True:
        code = f"P{random.randint(1000, 9999)}"
        if not exists(code):
            return code


class InventoryService:
    """
    Service layer for product stock.

    Every batch-list mutation runs as: lock and load the product, apply one
    ledger operation to an in-memory copy, then persist the whole batch list
    with the recomputed stock_quantity and the movement rows in a single
    versioned write. A failing ledger operation rolls back and writes nothing.
    """

    def __init__(self, session: Session, clock: Optional[Clock] = None):
        self.session = session
        self.repository = ProductRepository(session)
        self.clock = clock or utc_clock

    def today(self) -> date:
        return self.clock().date()

    # ------------------------------------------------------------------ #
    # Products                                                             #
    # ------------------------------------------------------------------ #

    def create_product(
        self,
        product_name: str,
        product_code: Optional[str] = None,
        generic_name: Optional[str] = None,
        supplier_id: Optional[str] = None,
        reorder_level: Optional[int] = None,
    ) -> Product:
        """Create a product with an empty batch list; a missing code is generated."""
        if not product_code:
            product_code = generate_product_code(self.repository.code_exists)
        product = Product(
            product_code=product_code,
            product_name=product_name,
            generic_name=generic_name,
            supplier_id=supplier_id,
            reorder_level=(
                reorder_level if reorder_level is not None else settings.default_reorder_level
            ),
            stock_quantity=0,
            batches=[],
        )
        product = self.repository.create(product)
        logger.info(
            "Product created",
            extra={"product_id": product.id, "product_code": product_code},
        )
        return product

    def get_product(self, product_id: int) -> Product:
        """Retrieve product by ID."""
        return self.repository.get_by_id(product_id)

    def update_product(self, product_id: int, data: Mapping[str, Any]) -> Product:
        """
        Change descriptive fields of a product; only the given keys change.

        Raises:
            ProductNotFoundError, ProductValidationError
        """
        errors = {
            field: "field cannot be updated"
            for field in data
            if field not in UPDATABLE_PRODUCT_FIELDS
        }
        errors.update(
            {
                field: "field cannot be null"
                for field in REQUIRED_PRODUCT_FIELDS
                if field in data and data[field] is None
            }
        )
        reorder_level = data.get("reorder_level")
        if reorder_level is not None and reorder_level < 0:
            errors["reorder_level"] = "must be greater than or equal to 0"
        if errors:
            raise ProductValidationError(errors)

        product = self.repository.get_by_id(product_id)
        for field, value in data.items():
            setattr(product, field, value)
        product = self.repository.update(product)
        logger.info(
            "Product updated",
            extra={"product_id": product_id, "fields": sorted(data)},
        )
        return product

    def list_products(
        self,
        skip: int = 0,
        limit: int = 100,
        search: Optional[str] = None,
        stock_status: Optional[StockStatus] = None,
    ) -> List[Product]:
        """
        List products with pagination.

        ``search`` matches name, code or generic name. ``stock_status`` is
        judged from the batches as of today, so pagination is applied after
        that filter.
        """
        if stock_status is None:
            return self.repository.list_all(skip=skip, limit=limit, search=search)

        today = self.today()
        candidates = self.repository.iter_products(
            search=search,
            stocked_only=stock_status != StockStatus.OUT_OF_STOCK,
        )
        matching = (
            product
            for product in candidates
            if InventoryLedger.for_product(product).stock_status(today) == stock_status
        )
        return list(islice(matching, skip, skip + limit))

    def list_low_stock(self) -> List[Product]:
        """Products at or below their reorder level that still have sellable units."""
        today = self.today()
        flagged = []
        for product in self.repository.iter_products(stocked_only=True):
            ledger = InventoryLedger.for_product(product)
            available = ledger.available_stock(today)
            if available > 0 and ledger.is_low_stock(today):
                flagged.append((available, product))
        return [product for _, product in sorted(flagged, key=lambda item: item[0])]

    def list_expiring(self, days: Optional[int] = None) -> List[Product]:
        """Products holding sellable batches that expire within ``days`` days."""
        window = days if days is not None else settings.expiring_soon_days
        today = self.today()
        return [
            product
            for product in self.repository.iter_products(stocked_only=True)
            if InventoryLedger.for_product(product).expiring_batches(today, window)
        ]

    def delete_product(self, product_id: int) -> None:
        """Delete a product that has no sellable stock left."""
        product = self.repository.get_by_id(product_id)
        available = InventoryLedger.for_product(product).available_stock(self.today())
        if available > 0:
            raise ProductHasStockError(product_id=product_id, available=available)
        self.repository.delete(product)
        logger.info("Product deleted", extra={"product_id": product_id})

    # ------------------------------------------------------------------ #
    # Ledger                                                               #
    # ------------------------------------------------------------------ #

    def get_ledger(self, product_id: int) -> InventoryLedger:
        """Read-only ledger over the product's current batches."""
        return InventoryLedger.for_product(self.repository.get_by_id(product_id))

    def allocate(self, product_id: int, quantity: int) -> AllocationResult:
        """Plan a FIFO allocation without changing stock."""
        return self.get_ledger(product_id).allocate(quantity, self.today())

    def reduce_stock(
        self,
        product_id: int,
        quantity: int,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> List[AllocationLine]:
        """
        Consume units FIFO and record one sale movement per batch drawn.

        Raises:
            ProductNotFoundError, InvalidQuantityError, InsufficientStockError,
            LedgerIntegrityError, ConcurrentModificationError
        """
        reason = reason or settings.default_movement_reason

        def operation(
            ledger: InventoryLedger, now: datetime
        ) -> tuple[List[AllocationLine], List[StockMovement]]:
            lines = ledger.reduce_stock(quantity, now)
            movements = [
                StockMovement(
                    product_id=product_id,
                    batch_id=line.batch_id,
                    movement_type=StockMovementType.SALE,
                    quantity=-line.quantity,
                    reason=reason,
                    notes=notes,
                    created_at=now,
                )
                for line in lines
            ]
            return lines, movements

        lines = self._mutate(product_id, operation)
        logger.info(
            "Stock reduced",
            extra={
                "product_id": product_id,
                "quantity": quantity,
                "reason": reason,
                "batches": [line.batch_id for line in lines],
            },
        )
        return lines

    def add_batch(self, product_id: int, data: Mapping[str, Any]) -> StockBatch:
        """
        Receive a batch and record a purchase movement.

        Raises:
            ProductNotFoundError, BatchValidationError, ConcurrentModificationError
        """

        def operation(
            ledger: InventoryLedger, now: datetime
        ) -> tuple[StockBatch, List[StockMovement]]:
            batch = ledger.add_batch(data, now)
            movement = StockMovement(
                product_id=product_id,
                batch_id=batch.id,
                movement_type=StockMovementType.PURCHASE,
                quantity=batch.quantity_remaining,
                reason="purchase",
                notes=f"New batch added: {batch.batch_number}",
                created_at=now,
            )
            return batch, [movement]

        batch = self._mutate(product_id, operation)
        logger.info(
            "Batch added",
            extra={
                "product_id": product_id,
                "batch_id": batch.id,
                "batch_number": batch.batch_number,
                "quantity": batch.quantity_remaining,
            },
        )
        return batch

    def update_batch(self, product_id: int, batch_id: str, data: Mapping[str, Any]) -> StockBatch:
        """
        Correct a batch; a quantity change is logged as an adjustment movement.

        Raises:
            ProductNotFoundError, BatchNotFoundError, BatchValidationError,
            ConcurrentModificationError
        """

        def operation(
            ledger: InventoryLedger, now: datetime
        ) -> tuple[StockBatch, List[StockMovement]]:
            before = ledger.get_batch(batch_id).quantity_remaining
            batch = ledger.update_batch(batch_id, data, now)
            delta = batch.quantity_remaining - before
            movements = []
            if delta:
                movements.append(
                    StockMovement(
                        product_id=product_id,
                        batch_id=batch_id,
                        movement_type=StockMovementType.ADJUSTMENT,
                        quantity=delta,
                        reason="adjustment",
                        created_at=now,
                    )
                )
            return batch, movements

        batch = self._mutate(product_id, operation)
        logger.info(
            "Batch updated",
            extra={"product_id": product_id, "batch_id": batch_id, "fields": sorted(data)},
        )
        return batch

    def list_movements(self, product_id: int, limit: int = 100) -> List[StockMovement]:
        """Movement log for a product, newest first."""
        self.repository.get_by_id(product_id)
        return self.repository.list_movements(product_id, limit=limit)

    def _mutate(
        self,
        product_id: int,
        operation: Callable[[InventoryLedger, datetime], tuple[T, List[StockMovement]]],
    ) -> T:
        product = self.repository.get_for_update(product_id)
        ledger = InventoryLedger.for_product(product)
        now = self.clock()

        try:
            result, movements = operation(ledger, now)
        except LedgerIntegrityError as exc:
            self.session.rollback()
            logger.error(
                "Allocation references missing batches",
                extra={"product_id": product_id, "missing_batch_ids": exc.missing_batch_ids},
            )
            raise
        except InventoryError:
            # Release the row lock; nothing was written.
            self.session.rollback()
            raise

        self.repository.save_batches(
            product,
            ledger.batches,
            ledger.stock_quantity(now.date()),
            movements,
        )
        return result
