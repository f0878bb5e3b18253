"""Store catalog router: products and stock."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from libs.common.config import get_settings
from libs.common.errors import NotFoundError
from libs.db.session import get_async_db
from services.store_service.schemas import (
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    RestockRequest,
)
from services.store_service.services import inventory_ledger, product_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/products", tags=["products"])


# ============================================================================
# CATALOG - PRODUCTS
# ============================================================================


@router.get("", response_model=list[ProductResponse])
async def list_products(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    """List active products, optionally filtered by name or SKU."""
    return await product_ops.list_products(db, search=search, limit=limit, offset=offset)


@router.get("/low-stock", response_model=list[ProductResponse])
async def list_low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    """Products at or below the low-stock threshold."""
    if threshold is None:
        threshold = get_settings().LOW_STOCK_THRESHOLD
    return await inventory_ledger.low_stock(db, threshold)


@router.get("/sku/{sku}", response_model=ProductResponse)
async def get_product_by_sku(sku: str, db: AsyncSession = Depends(get_async_db)):
    product = await product_ops.get_product_by_sku(db, sku)
    if product is None:
        raise NotFoundError(f"Product with SKU {sku} not found", details={"sku": sku})
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    return await product_ops.require_product(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate, db: AsyncSession = Depends(get_async_db)
):
    return await product_ops.create_product(db, **payload.model_dump())


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    return await product_ops.update_product(
        db, product_id, **payload.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.post("/{product_id}/restock", response_model=ProductResponse)
async def restock_product(
    product_id: uuid.UUID,
    payload: RestockRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """Add units to a product's stock."""
    return await product_ops.restock_product(db, product_id, payload.quantity)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    await product_ops.delete_product(db, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
