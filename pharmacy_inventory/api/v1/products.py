"""API endpoints for product operations."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from pharmacy_inventory.database import get_session
from pharmacy_inventory.domain.exceptions import (
    DuplicateProductCodeError,
    ProductHasStockError,
    ProductNotFoundError,
    ProductValidationError,
)
from pharmacy_inventory.domain.services.inventory_service import InventoryService
from pharmacy_inventory.domain.value_objects import StockStatus
from pharmacy_inventory.schemas.product import (
    ProductCreateRequest,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
)

router = APIRouter(prefix="/products", tags=["products"])


def _product_list(service: InventoryService, products: list) -> ProductListResponse:
    today = service.today()
    return ProductListResponse(
        products=[ProductResponse.from_product(p, today) for p in products],
        total=len(products),
    )


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    product_data: ProductCreateRequest,
    session: Annotated[Session, Depends(get_session)],
) -> ProductResponse:
    """Create a product with no stock."""
    service = InventoryService(session)

    try:
        product = service.create_product(
            product_code=product_data.product_code,
            product_name=product_data.product_name,
            generic_name=product_data.generic_name,
            supplier_id=product_data.supplier_id,
            reorder_level=product_data.reorder_level,
        )
        return ProductResponse.from_product(product, service.today())

    except DuplicateProductCodeError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.get("/low-stock", response_model=ProductListResponse)
def list_low_stock_products(
    session: Annotated[Session, Depends(get_session)],
) -> ProductListResponse:
    """Products at or below their reorder level that still have sellable units."""
    service = InventoryService(session)
    return _product_list(service, service.list_low_stock())


@router.get("/expiring", response_model=ProductListResponse)
def list_expiring_products(
    days: int | None = Query(None, ge=1, le=365, description="Look-ahead window in days"),
    session: Annotated[Session, Depends(get_session)] = None,
) -> ProductListResponse:
    """Products with sellable batches expiring within the window."""
    service = InventoryService(session)
    return _product_list(service, service.list_expiring(days=days))


@router.get("/", response_model=ProductListResponse)
def list_products(
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(100, ge=1, le=1000, description="Page size"),
    search: str | None = Query(
        None, min_length=1, description="Match product name, code or generic name"
    ),
    stock_status: StockStatus | None = Query(None, description="Current stock status"),
    session: Annotated[Session, Depends(get_session)] = None,
) -> ProductListResponse:
    """List products, optionally filtered by search text and stock status."""
    service = InventoryService(session)
    products = service.list_products(
        skip=skip,
        limit=limit,
        search=search,
        stock_status=stock_status,
    )
    return _product_list(service, products)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    session: Annotated[Session, Depends(get_session)],
) -> ProductResponse:
    """Retrieve a product with its stock figures."""
    service = InventoryService(session)

    try:
        product = service.get_product(product_id)
        return ProductResponse.from_product(product, service.today())

    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.patch("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    update_data: ProductUpdateRequest,
    session: Annotated[Session, Depends(get_session)],
) -> ProductResponse:
    """Change product details; omitted fields are left unchanged."""
    service = InventoryService(session)

    try:
        product = service.update_product(product_id, update_data.model_dump(exclude_unset=True))
        return ProductResponse.from_product(product, service.today())

    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except ProductValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "errors": e.errors},
        )


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    session: Annotated[Session, Depends(get_session)],
) -> None:
    """Delete a product without sellable stock."""
    service = InventoryService(session)

    try:
        service.delete_product(product_id)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except ProductHasStockError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
