"""Store customers router."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from libs.common.rate_limit import read_limit, write_limit
from libs.db.session import get_async_db
from services.store_service.schemas import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
)
from services.store_service.services import customer_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=list[CustomerResponse])
@read_limit
async def list_customers(
    request: Request,
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    return await customer_ops.list_customers(
        db, search=search, limit=limit, offset=offset
    )


@router.get("/{customer_id}", response_model=CustomerResponse)
@read_limit
async def get_customer(
    request: Request, customer_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)
):
    return await customer_ops.require_customer(db, customer_id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@write_limit
async def create_customer(
    request: Request,
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_async_db),
):
    return await customer_ops.create_customer(db, **payload.model_dump())


@router.patch("/{customer_id}", response_model=CustomerResponse)
@write_limit
async def update_customer(
    request: Request,
    customer_id: uuid.UUID,
    payload: CustomerUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    return await customer_ops.update_customer(
        db, customer_id, **payload.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
@write_limit
async def delete_customer(
    request: Request, customer_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)
):
    """Delete a customer without orders."""
    await customer_ops.delete_customer(db, customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
