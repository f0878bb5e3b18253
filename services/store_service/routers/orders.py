"""Store orders router: placement, lookup and status changes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from libs.common.dependencies import get_event_bus
from libs.common.errors import NotFoundError
from libs.common.events import EventBus
from libs.common.rate_limit import write_limit
from libs.db.session import get_async_db
from services.store_service.models import OrderStatus
from services.store_service.schemas import (
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
)
from services.store_service.services import order_ops
from services.store_service.services.order_placement import OrderLine, place_order
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    customer_id: Optional[uuid.UUID] = None,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    orders = await order_ops.list_orders(
        db, customer_id=customer_id, status=status_filter, limit=limit, offset=offset
    )
    return [OrderResponse.from_order(order) for order in orders]


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@write_limit
async def create_order(
    request: Request,
    payload: OrderCreate,
    db: AsyncSession = Depends(get_async_db),
    events: EventBus = Depends(get_event_bus),
):
    """Place an order; stock is reserved atomically with order creation."""
    order = await place_order(
        db,
        customer_id=payload.customer_id,
        items=[OrderLine(item.product_id, item.quantity) for item in payload.items],
        events=events,
    )
    return OrderResponse.from_order(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: uuid.UUID, db: AsyncSession = Depends(get_async_db)):
    order = await order_ops.get_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": str(order_id)})
    return OrderResponse.from_order(order)


@router.patch("/{order_id}/status", response_model=OrderResponse)
@write_limit
async def update_order_status(
    request: Request,
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_ops.update_order_status(db, order_id, payload.status)
    return OrderResponse.from_order(order)
