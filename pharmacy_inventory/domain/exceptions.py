"""Domain-specific exception classes."""


class InventoryError(Exception):
    """Base exception for pharmacy inventory errors."""

    pass


class ProductNotFoundError(InventoryError):
    """Raised when a product cannot be found."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class DuplicateProductCodeError(InventoryError):
    """Raised when product_code already exists."""

    def __init__(self, product_code: str):
        self.product_code = product_code
        super().__init__(f"Product code '{product_code}' already exists")


class ProductHasStockError(InventoryError):
    """Raised when deleting a product that still has sellable stock."""

    def __init__(self, product_id: int, available: int):
        self.product_id = product_id
        self.available = available
        super().__init__(
            f"Cannot delete product {product_id} with available stock ({available} units)"
        )


class BatchNotFoundError(InventoryError):
    """Raised when a batch id is not part of the product's batch list."""

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} not found")


class BatchValidationError(InventoryError):
    """Raised when batch data is missing required fields or breaks batch invariants."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{field}: {message}" for field, message in errors.items())
        super().__init__(f"Invalid batch data: {details}")


class InvalidQuantityError(InventoryError):
    """Raised when a requested quantity is not a positive whole number of units."""

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class InsufficientStockError(InventoryError):
    """Raised when requested units exceed the product's available stock."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        self.shortage = requested - available
        super().__init__(
            f"Insufficient stock: requested={requested}, "
            f"available={available}, shortage={self.shortage}"
        )


class LedgerIntegrityError(InventoryError):
    """Raised when an allocation references batches missing from the live batch list."""

    def __init__(self, missing_batch_ids: list[str]):
        self.missing_batch_ids = missing_batch_ids
        super().__init__(
            "Allocation references unknown batches: " + ", ".join(missing_batch_ids)
        )


class ConcurrentModificationError(InventoryError):
    """Raised when the product's batch list changed since it was loaded."""

    def __init__(self, product_id: int, expected_version: int):
        self.product_id = product_id
        self.expected_version = expected_version
        super().__init__(
            f"Product {product_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class ProductValidationError(InventoryError):
    """Raised when a product update names a field that cannot change or nulls a required one."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{field}: {message}" for field, message in errors.items())
        super().__init__(f"Invalid product data: {details}")
