"""Data access layer for Product and StockMovement operations."""

from datetime import datetime, timezone
from collections.abc import Iterator
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, or_, select

from pharmacy_inventory.domain.exceptions import (
    ConcurrentModificationError,
    DuplicateProductCodeError,
    ProductNotFoundError,
)
from pharmacy_inventory.domain.models import Product, StockBatch, StockMovement


class ProductRepository:
    """Repository for product database operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, product: Product) -> Product:
        """
        Create a new product.

        Args:
            product: Product instance to persist

        Returns:
            Created product with generated ID

        Raises:
            DuplicateProductCodeError: If product_code already exists
        """
        try:
            self.session.add(product)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateProductCodeError(product_code=product.product_code)
        self.session.refresh(product)
        return product

    def get_by_id(self, product_id: int) -> Product:
        """
        Retrieve product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        product = self.session.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(product_id=product_id)
        return product

    def get_for_update(self, product_id: int) -> Product:
        """
        Retrieve product by ID holding a row lock until the next commit/rollback.

        SELECT FOR UPDATE serializes batch-list writers on PostgreSQL; the
        version check in ``save_batches`` covers backends that ignore it.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        statement = (
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        product = self.session.exec(statement).first()
        if not product:
            raise ProductNotFoundError(product_id=product_id)
        return product

    def code_exists(self, product_code: str) -> bool:
        statement = select(Product.id).where(Product.product_code == product_code)
        return self.session.exec(statement).first() is not None

    def _filtered(self, search: Optional[str] = None, stocked_only: bool = False):
        statement = select(Product)
        if search:
            pattern = f"%{search}%"
            statement = statement.where(
                or_(
                    col(Product.product_name).ilike(pattern),
                    col(Product.product_code).ilike(pattern),
                    col(Product.generic_name).ilike(pattern),
                )
            )
        if stocked_only:
            statement = statement.where(Product.stock_quantity > 0)
        return statement.order_by(Product.product_code)  # type: ignore[arg-type]

    def list_all(
        self,
        skip: int = 0,
        limit: Optional[int] = 100,
        search: Optional[str] = None,
    ) -> List[Product]:
        """List products ordered by product code, optionally matching ``search``."""
        statement = self._filtered(search=search).offset(skip).limit(limit)
        return list(self.session.exec(statement).all())

    def iter_products(
        self,
        search: Optional[str] = None,
        stocked_only: bool = False,
        chunk_size: int = 500,
    ) -> Iterator[Product]:
        """
        Yield matching products in product-code order, loading ``chunk_size`` rows at a time.

        ``stocked_only`` keeps products whose stored stock_quantity is positive.
        The stored value is the available stock as of the last batch-list write
        and can only have dropped since (batches expire, nothing is added
        without a write), so a product skipped here has no sellable stock now.
        """
        statement = self._filtered(search=search, stocked_only=stocked_only)
        offset = 0
        while True:
            chunk = self.session.exec(statement.offset(offset).limit(chunk_size)).all()
            yield from chunk
            if len(chunk) < chunk_size:
                return
            offset += chunk_size

    def update(self, product: Product) -> Product:
        """Persist changed descriptive fields of a product."""
        product.updated_at = datetime.now(timezone.utc)
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return product

    def delete(self, product: Product) -> None:
        """Delete a product and its movement log."""
        movements = self.session.exec(
            select(StockMovement).where(StockMovement.product_id == product.id)
        ).all()
        for movement in movements:
            self.session.delete(movement)
        self.session.delete(product)
        self.session.commit()

    def save_batches(
        self,
        product: Product,
        batches: list[StockBatch],
        stock_quantity: int,
        movements: list[StockMovement],
    ) -> Product:
        """
        Rewrite the product's batch list as one versioned write.

        The UPDATE only matches while the stored version equals the version
        the product was loaded with; the movements are committed in the same
        transaction.

        Args:
            product: Product as loaded by ``get_for_update``
            batches: Complete batch list to store
            stock_quantity: Derived available stock for the new batch list
            movements: Movement log rows describing the change

        Returns:
            The refreshed product

        Raises:
            ConcurrentModificationError: Another writer saved first
        """
        product_id = product.id
        expected_version = product.version
        statement = (
            update(Product)
            .where(Product.id == product_id)  # type: ignore[arg-type]
            .where(Product.version == expected_version)  # type: ignore[arg-type]
            .values(
                batches=[batch.to_document() for batch in batches],
                stock_quantity=stock_quantity,
                version=expected_version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        if result.rowcount != 1:
            self.session.rollback()
            raise ConcurrentModificationError(
                product_id=product_id,  # type: ignore[arg-type]
                expected_version=expected_version,
            )

        for movement in movements:
            self.session.add(movement)

        self.session.commit()
        self.session.refresh(product)
        return product

    def list_movements(self, product_id: int, limit: int = 100) -> List[StockMovement]:
        """List the product's movements, newest first."""
        statement = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(
                StockMovement.created_at.desc(),  # type: ignore[attr-defined]
                StockMovement.id.desc(),  # type: ignore[union-attr]
            )
            .limit(limit)
        )
        return list(self.session.exec(statement).all())
