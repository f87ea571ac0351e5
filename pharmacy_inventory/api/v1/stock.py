"""API endpoints for batch receiving, allocation and stock reduction."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from pharmacy_inventory.database import get_session
from pharmacy_inventory.domain.exceptions import (
    BatchNotFoundError,
    BatchValidationError,
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidQuantityError,
    LedgerIntegrityError,
    ProductNotFoundError,
)
from pharmacy_inventory.domain.models import StockBatch
from pharmacy_inventory.domain.services.inventory_service import InventoryService
from pharmacy_inventory.schemas.allocation import (
    AllocationLineResponse,
    AllocationRequest,
    AllocationResponse,
    ReduceStockRequest,
    ReduceStockResponse,
)
from pharmacy_inventory.schemas.batch import (
    BatchCreateRequest,
    BatchListResponse,
    BatchResponse,
    BatchSummary,
    BatchUpdateRequest,
)
from pharmacy_inventory.schemas.movement import (
    StockMovementListResponse,
    StockMovementResponse,
)

router = APIRouter(prefix="/products", tags=["stock"])


def _batch_response(batch: StockBatch) -> BatchResponse:
    return BatchResponse.model_validate(batch.model_dump())


@router.get("/{product_id}/batches", response_model=BatchListResponse)
def list_batches(
    product_id: int,
    session: Annotated[Session, Depends(get_session)],
) -> BatchListResponse:
    """Available (FIFO order) and expired batches with totals."""
    service = InventoryService(session)

    try:
        ledger = service.get_ledger(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    today = service.today()
    available = ledger.available_batches(today)
    expired = ledger.expired_batches(today)
    return BatchListResponse(
        product_id=product_id,
        available_batches=[_batch_response(b) for b in available],
        expired_batches=[_batch_response(b) for b in expired],
        summary=BatchSummary(
            total_available=sum(b.quantity_remaining for b in available),
            total_expired=sum(b.quantity_remaining for b in expired),
            batch_count=len(available),
            inventory_value=ledger.inventory_value(today),
        ),
    )


@router.post(
    "/{product_id}/batches",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_batch(
    product_id: int,
    batch_data: BatchCreateRequest,
    session: Annotated[Session, Depends(get_session)],
) -> BatchResponse:
    """Receive a new batch."""
    service = InventoryService(session)

    try:
        batch = service.add_batch(product_id, batch_data.model_dump(exclude_none=True))
        return _batch_response(batch)

    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except BatchValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "errors": e.errors},
        )
    except ConcurrentModificationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.patch("/{product_id}/batches/{batch_id}", response_model=BatchResponse)
def update_batch(
    product_id: int,
    batch_id: str,
    update_data: BatchUpdateRequest,
    session: Annotated[Session, Depends(get_session)],
) -> BatchResponse:
    """Correct a batch; omitted fields are left unchanged."""
    service = InventoryService(session)

    try:
        batch = service.update_batch(
            product_id,
            batch_id,
            update_data.model_dump(exclude_unset=True),
        )
        return _batch_response(batch)

    except (ProductNotFoundError, BatchNotFoundError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except BatchValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "errors": e.errors},
        )
    except ConcurrentModificationError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.post("/{product_id}/allocate", response_model=AllocationResponse)
def preview_allocation(
    product_id: int,
    allocation_data: AllocationRequest,
    session: Annotated[Session, Depends(get_session)],
) -> AllocationResponse:
    """Plan a FIFO allocation without consuming stock."""
    service = InventoryService(session)

    try:
        result = service.allocate(product_id, allocation_data.quantity)
        return AllocationResponse.from_result(allocation_data.quantity, result)

    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidQuantityError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


@router.post("/{product_id}/reduce", response_model=ReduceStockResponse)
def reduce_stock(
    product_id: int,
    reduce_data: ReduceStockRequest,
    session: Annotated[Session, Depends(get_session)],
) -> ReduceStockResponse:
    """Consume stock FIFO across batches (all or nothing)."""
    service = InventoryService(session)

    try:
        lines = service.reduce_stock(
            product_id,
            reduce_data.quantity,
            reason=reduce_data.reason,
            notes=reduce_data.notes,
        )
        product = service.get_product(product_id)

        return ReduceStockResponse(
            product_id=product_id,
            quantity=reduce_data.quantity,
            reason=reduce_data.reason,
            batches_used=[AllocationLineResponse.from_line(line) for line in lines],
            stock_quantity=product.stock_quantity,
        )

    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InsufficientStockError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "requested": e.requested,
                "available": e.available,
                "shortage": e.shortage,
            },
        )
    except InvalidQuantityError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except (LedgerIntegrityError, ConcurrentModificationError) as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.get("/{product_id}/movements", response_model=StockMovementListResponse)
def list_movements(
    product_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Maximum movements returned"),
    session: Annotated[Session, Depends(get_session)] = None,
) -> StockMovementListResponse:
    """Stock movement log, newest first."""
    service = InventoryService(session)

    try:
        movements = service.list_movements(product_id, limit=limit)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return StockMovementListResponse(
        movements=[StockMovementResponse.model_validate(m) for m in movements],
        total=len(movements),
    )
