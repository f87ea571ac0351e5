"""Integration tests for InventoryService against an in-memory database."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlmodel import Session, select

from pharmacy_inventory.domain.exceptions import (
    BatchNotFoundError,
    ConcurrentModificationError,
    DuplicateProductCodeError,
    InsufficientStockError,
    ProductHasStockError,
    ProductNotFoundError,
    ProductValidationError,
)
from pharmacy_inventory.domain.ledger import InventoryLedger
from pharmacy_inventory.domain.models import Product, StockMovement, StockMovementType
from pharmacy_inventory.domain.services import inventory_service
from pharmacy_inventory.domain.services.inventory_service import InventoryService
from pharmacy_inventory.domain.value_objects import AllocationPlan, Shortage, StockStatus
from pharmacy_inventory.repositories.product_repository import ProductRepository


def batch_data(today, number: str, qty: int, expires_in: int, price: str = "2.00") -> dict:
    return {
        "batch_number": number,
        "expiration_date": today + timedelta(days=expires_in),
        "quantity_received": qty,
        "unit_cost": Decimal("1.00"),
        "sale_price": Decimal(price),
    }


@pytest.fixture(name="product")
def product_fixture(service: InventoryService) -> Product:
    return service.create_product(
        product_code="P1001",
        product_name="Amoxicillin 500mg",
        supplier_id="SUP-1",
        reorder_level=5,
    )


class TestProducts:
    """Tests for product lifecycle."""

    def test_create_product_starts_empty(self, product: Product):
        assert product.id is not None
        assert product.batches == []
        assert product.stock_quantity == 0
        assert product.version == 1

    def test_default_reorder_level_from_settings(self, service: InventoryService):
        product = service.create_product(product_code="P2", product_name="Cetirizine 10mg")
        assert product.reorder_level == 10

    def test_duplicate_code(self, service: InventoryService, product: Product):
        with pytest.raises(DuplicateProductCodeError):
            service.create_product(product_code="P1001", product_name="Other")

    def test_missing_product(self, service: InventoryService):
        with pytest.raises(ProductNotFoundError):
            service.get_product(999)
        with pytest.raises(ProductNotFoundError):
            service.reduce_stock(999, 1)

    def test_delete_refused_while_stock_available(self, service, product, now):
        service.add_batch(product.id, batch_data(now.date(), "LOT-1", 3, 30))
        with pytest.raises(ProductHasStockError):
            service.delete_product(product.id)

    def test_delete_allowed_with_only_expired_stock(self, service, product, now):
        service.add_batch(product.id, batch_data(now.date(), "LOT-1", 3, -1))
        service.delete_product(product.id)

        with pytest.raises(ProductNotFoundError):
            service.get_product(product.id)

    def test_low_stock_listing(self, service, product, now):
        today = now.date()
        plenty = service.create_product(product_code="P3", product_name="Plenty", reorder_level=5)
        service.create_product(product_code="P4", product_name="Empty", reorder_level=5)
        service.add_batch(product.id, batch_data(today, "LOT-1", 4, 30))
        service.add_batch(plenty.id, batch_data(today, "LOT-2", 50, 30))

        assert [p.product_code for p in service.list_low_stock()] == ["P1001"]

    def test_expiring_listing(self, service, product, now):
        today = now.date()
        later = service.create_product(product_code="P5", product_name="Later")
        service.add_batch(product.id, batch_data(today, "LOT-1", 4, 20))
        service.add_batch(later.id, batch_data(today, "LOT-2", 4, 200))

        assert [p.product_code for p in service.list_expiring(days=30)] == ["P1001"]
        assert len(service.list_expiring(days=365)) == 2


class TestStockMutations:
    """Tests for persisted batch-list mutations."""

    def test_add_batch_persists_and_recomputes_stock(self, service, product, now):
        batch = service.add_batch(product.id, batch_data(now.date(), "LOT-1", 12, 30))

        stored = service.get_product(product.id)
        assert stored.stock_quantity == 12
        assert stored.version == 2
        assert stored.batches[0]["id"] == batch.id
        assert batch.supplier_id == "SUP-1"

    def test_reduce_stock_scenario(self, service, product, now):
        """A(5, +10d) and B(10, +30d): reducing 7 draws 5 from A and 2 from B."""
        today = now.date()
        a = service.add_batch(product.id, batch_data(today, "A", 5, 10, price="2"))
        b = service.add_batch(product.id, batch_data(today, "B", 10, 30, price="3"))
        before = service.get_product(product.id).stock_quantity

        lines = service.reduce_stock(product.id, 7, reason="pos_sale")

        assert [(line.batch_id, line.quantity) for line in lines] == [(a.id, 5), (b.id, 2)]
        assert sum(line.cost for line in lines) == Decimal("7")
        ledger = service.get_ledger(product.id)
        assert ledger.get_batch(a.id).quantity_remaining == 0
        assert ledger.get_batch(b.id).quantity_remaining == 8
        assert service.get_product(product.id).stock_quantity == before - 7

    def test_reduce_records_sale_movements(self, service, product, now, session: Session):
        today = now.date()
        service.add_batch(product.id, batch_data(today, "A", 5, 10))
        service.add_batch(product.id, batch_data(today, "B", 10, 30))
        service.reduce_stock(product.id, 7, reason="order_reservation", notes="ORD-77")

        sales = session.exec(
            select(StockMovement).where(StockMovement.movement_type == StockMovementType.SALE)
        ).all()
        assert sorted(m.quantity for m in sales) == [-5, -2]
        assert {m.reason for m in sales} == {"order_reservation"}
        assert {m.notes for m in sales} == {"ORD-77"}

    def test_failed_reduce_writes_nothing(self, service, product, now):
        service.add_batch(product.id, batch_data(now.date(), "A", 5, 10))
        before = service.get_product(product.id)
        version, batches = before.version, list(before.batches)

        with pytest.raises(InsufficientStockError) as exc_info:
            service.reduce_stock(product.id, 6)

        assert exc_info.value.shortage == 1
        after = service.get_product(product.id)
        assert after.version == version
        assert after.batches == batches
        assert len(service.list_movements(product.id)) == 1

    def test_expired_batches_ignored_by_clock(self, service, product, now):
        today = now.date()
        service.add_batch(product.id, batch_data(today, "OLD", 50, -3))
        service.add_batch(product.id, batch_data(today, "NEW", 4, 30))

        assert service.get_product(product.id).stock_quantity == 4
        assert isinstance(service.allocate(product.id, 4), AllocationPlan)
        assert isinstance(service.allocate(product.id, 5), Shortage)

    def test_allocate_is_read_only(self, service, product, now):
        service.add_batch(product.id, batch_data(now.date(), "A", 5, 10))
        version = service.get_product(product.id).version

        service.allocate(product.id, 3)
        service.allocate(product.id, 30)

        assert service.get_product(product.id).version == version
        assert service.get_ledger(product.id).available_stock(now.date()) == 5

    def test_update_batch_records_adjustment(self, service, product, now):
        batch = service.add_batch(product.id, batch_data(now.date(), "A", 10, 10))

        updated = service.update_batch(product.id, batch.id, {"quantity_remaining": 7})

        assert updated.quantity_remaining == 7
        assert service.get_product(product.id).stock_quantity == 7
        latest = service.list_movements(product.id)[0]
        assert latest.movement_type == StockMovementType.ADJUSTMENT
        assert latest.quantity == -3

    def test_update_without_quantity_change_records_no_movement(self, service, product, now):
        batch = service.add_batch(product.id, batch_data(now.date(), "A", 10, 10))
        service.update_batch(product.id, batch.id, {"sale_price": Decimal("4.00")})

        assert len(service.list_movements(product.id)) == 1

    def test_update_unknown_batch(self, service, product):
        with pytest.raises(BatchNotFoundError):
            service.update_batch(product.id, "nope", {"notes": "x"})

    def test_clock_is_used_for_timestamps(self, session, product, now):
        later = now + timedelta(days=2)
        service = InventoryService(session, clock=lambda: later)
        batch = service.add_batch(product.id, batch_data(now.date(), "A", 1, 30))

        assert batch.created_at == later
        assert batch.received_date == later.date()


class TestVersionedWrites:
    """Tests for the compare-and-swap write guarding the batch list."""

    def test_each_write_bumps_version(self, service, product, now):
        today = now.date()
        service.add_batch(product.id, batch_data(today, "A", 5, 10))
        service.add_batch(product.id, batch_data(today, "B", 5, 20))
        service.reduce_stock(product.id, 2)

        assert service.get_product(product.id).version == 4

    def test_stale_write_is_rejected(self, session: Session, product, now):
        repository = ProductRepository(session)
        loaded = repository.get_for_update(product.id)
        ledger = InventoryLedger.for_product(loaded)
        ledger.add_batch(batch_data(now.date(), "A", 5, 10), now)

        # Another writer commits first.
        session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(version=Product.version + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModificationError) as exc_info:
            repository.save_batches(loaded, ledger.batches, ledger.stock_quantity(now.date()), [])

        assert exc_info.value.expected_version == 1
        assert repository.get_by_id(product.id).batches == []


class TestProductMaintenance:
    """Tests for product updates, code generation and filtered listings."""

    def test_update_product(self, service, product):
        updated = service.update_product(product.id, {"reorder_level": 2, "generic_name": "amox"})

        assert updated.reorder_level == 2
        assert updated.generic_name == "amox"
        assert updated.product_name == "Amoxicillin 500mg"

    def test_update_does_not_touch_batches_or_version(self, service, product, now):
        service.add_batch(product.id, batch_data(now.date(), "A", 5, 10))

        updated = service.update_product(product.id, {"product_name": "Amoxil"})

        assert updated.version == 2
        assert updated.stock_quantity == 5
        assert len(updated.batches) == 1

    def test_update_rejects_fixed_fields(self, service, product):
        with pytest.raises(ProductValidationError) as exc_info:
            service.update_product(product.id, {"product_code": "NEW", "stock_quantity": 99})

        assert set(exc_info.value.errors) == {"product_code", "stock_quantity"}
        assert service.get_product(product.id).product_code == "P1001"

    def test_update_rejects_null_and_negative(self, service, product):
        with pytest.raises(ProductValidationError) as exc_info:
            service.update_product(product.id, {"product_name": None, "reorder_level": -4})

        assert set(exc_info.value.errors) == {"product_name", "reorder_level"}

    def test_update_unknown_product(self, service):
        with pytest.raises(ProductNotFoundError):
            service.update_product(999, {"reorder_level": 1})

    def test_generated_code_skips_taken_codes(self, service, product, monkeypatch):
        draws = iter([1001, 1001, 4242])
        monkeypatch.setattr(inventory_service.random, "randint", lambda a, b: next(draws))

        created = service.create_product(product_name="Paracetamol 500mg")

        assert created.product_code == "P4242"

    def test_status_filter_uses_current_date(self, session, product, now):
        """Stock that expired after the last write no longer counts as in stock."""
        service = InventoryService(session, clock=lambda: now)
        service.add_batch(product.id, batch_data(now.date(), "A", 20, 5))
        later = InventoryService(session, clock=lambda: now + timedelta(days=6))

        assert service.get_product(product.id).stock_quantity == 20
        assert [p.id for p in service.list_products(stock_status=StockStatus.IN_STOCK)] == [
            product.id
        ]
        assert later.list_products(stock_status=StockStatus.IN_STOCK) == []
        assert [p.id for p in later.list_products(stock_status=StockStatus.OUT_OF_STOCK)] == [
            product.id
        ]
        assert later.list_low_stock() == []
        assert later.list_expiring(days=30) == []

    def test_iter_products_pages_through_table(self, service, session, now):
        for index in range(5):
            created = service.create_product(product_code=f"C{index}", product_name="Item")
            if index % 2 == 0:
                service.add_batch(created.id, batch_data(now.date(), f"L{index}", 3, 30))
        repository = ProductRepository(session)

        assert [p.product_code for p in repository.iter_products(chunk_size=2)] == [
            "C0",
            "C1",
            "C2",
            "C3",
            "C4",
        ]
        assert [
            p.product_code for p in repository.iter_products(stocked_only=True, chunk_size=2)
        ] == ["C0", "C2", "C4"]
        assert [
            p.product_code for p in repository.iter_products(search="c3", chunk_size=2)
        ] == ["C3"]
